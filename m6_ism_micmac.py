# SPDX-License-Identifier: PROPRIETARY
# File: m6_ism_micmac.py
# Purpose: Module 6 - MICMAC classification of factors by driving and dependence power

"""
MICMAC Analysis

MICMAC (Matriced Impacts Croises Multiplication Appliquee a un Classement)
classifies factors into four clusters based on their driving and dependence
power in the Final Reachability Matrix.

Mathematical Formulas:
----------------------

1. POWERS:
   DP(i)  = Σ r_ij  (row sum, includes the reflexive 1)
   DEP(i) = Σ r_ji  (column sum, includes the reflexive 1)

2. SPLIT POINT:
   Reference: Warfield (1974), Mandal & Deshmukh (1994), Ravi & Shankar (2005)

   split = n / 2   (float; n = 11 gives 5.5, n = 12 gives 6.0)

   A power exactly equal to the split point counts as LOW.

3. FOUR QUADRANTS CLASSIFICATION:
   | Quadrant | Name       | Condition                   | Characteristic                  |
   |----------|------------|-----------------------------|---------------------------------|
   | I        | Autonomous | DP <= split AND DEP <= split | Weak driver, weak dependent     |
   | II       | Dependent  | DP <= split AND DEP > split  | Weak driver, strong dependent   |
   | III      | Linkage    | DP > split AND DEP > split   | Strong driver, strong dependent |
   | IV       | Driver     | DP > split AND DEP <= split  | Strong driver, weak dependent   |

4. MICMAC SCATTER PLOT:
   - X-axis: Dependence Power (DEP)
   - Y-axis: Driving Power (DP)
   - Dashed lines at x = split and y = split
"""

import textwrap

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import matplotlib.patches as mpatches

# Import from previous modules
from m1_data_processing import (
    get_factor_label,
    prepare_output_dir,
    write_workbook
)
from m3_ism_frm import (
    calculate_dependence_power,
    calculate_driving_power,
    create_reachability_matrix
)

# =============================================================================
# QUADRANT NAMES
# =============================================================================

AUTONOMOUS = 'Autonomous'
DEPENDENT = 'Dependent'
LINKAGE = 'Linkage'
DRIVER = 'Driver'

# Reporting order: drivers first, disconnected last
QUADRANT_ORDER = [DRIVER, LINKAGE, DEPENDENT, AUTONOMOUS]

# =============================================================================
# CONFIGURABLE PARAMETERS
# =============================================================================

# Figure settings
FIGURE_WIDTH = 12
FIGURE_HEIGHT = 9
FIGURE_DPI = 300
FIGURE_BG_COLOR = '#FFFFFF'

# Marker settings
MARKER_SIZE = 200
MARKER_EDGE_COLOR = 'white'
MARKER_EDGE_WIDTH = 2

# Point colors by quadrant (Okabe-Ito colorblind-safe palette)
POINT_COLORS = {
    AUTONOMOUS: '#009E73',
    DEPENDENT: '#0072B2',
    LINKAGE: '#D55E00',
    DRIVER: '#E69F00'
}

# Split line settings
MIDLINE_COLOR = '#666666'
MIDLINE_STYLE = '--'
MIDLINE_WIDTH = 1.5

# Grid settings
GRID_COLOR = '#E0E0E0'
GRID_ALPHA = 0.7
GRID_LINEWIDTH = 0.5

# Font settings
FONT_FAMILY = 'sans-serif'
AXIS_LABEL_SIZE = 15
TICK_LABEL_SIZE = 10
QUADRANT_LABEL_SIZE = 15
QUADRANT_LABEL_COLOR = '#888888'
FACTOR_LABEL_SIZE = 11
FACTOR_LABEL_MAX_WIDTH = 18      # Max characters per line for text wrapping
LEADER_LINE_COLOR = '#888888'

LEGEND_FONT_SIZE = 12

# =============================================================================
# MICMAC CALCULATIONS
# =============================================================================

def calculate_split_point(n_factors):
    """Split point between low and high power: n / 2 as a float."""
    return n_factors / 2


def classify_factor(driving_power, dependence_power, split_point):
    """
    Assign one factor to its MICMAC quadrant.

    Powers equal to the split point count as low.
    """
    if driving_power <= split_point:
        if dependence_power <= split_point:
            return AUTONOMOUS
        return DEPENDENT
    if dependence_power > split_point:
        return LINKAGE
    return DRIVER


def classify_micmac(frm):
    """
    Classify every factor of a Final Reachability Matrix.

    Parameters:
    -----------
    frm : numpy.ndarray
        Final Reachability Matrix

    Returns:
    --------
    dict
        - 'split_point': n / 2
        - 'points': one record per factor in index order with keys
          'factor_index', 'driving_power', 'dependence_power', 'quadrant'
    """
    frm = np.asarray(frm, dtype=int)
    n = len(frm)
    split_point = calculate_split_point(n)

    driving_power = calculate_driving_power(frm) if n else np.zeros(0, dtype=int)
    dependence_power = calculate_dependence_power(frm) if n else np.zeros(0, dtype=int)

    points = []
    for i in range(n):
        dp = int(driving_power[i])
        dep = int(dependence_power[i])
        points.append({
            'factor_index': i,
            'driving_power': dp,
            'dependence_power': dep,
            'quadrant': classify_factor(dp, dep, split_point)
        })

    return {
        'split_point': split_point,
        'points': points
    }


def calculate_boundaries(driving_power, dependence_power):
    """
    Calculate min and max boundaries for driving and dependence power.

    Returns:
    --------
    dict
        'dp_max', 'dp_min', 'dep_max', 'dep_min' (0 when there are no factors)
    """
    if len(driving_power) == 0:
        return {'dp_max': 0, 'dp_min': 0, 'dep_max': 0, 'dep_min': 0}

    return {
        'dp_max': int(np.max(driving_power)),
        'dp_min': int(np.min(driving_power)),
        'dep_max': int(np.max(dependence_power)),
        'dep_min': int(np.min(dependence_power))
    }


def group_by_quadrant(points):
    """Map each quadrant name to the factor indices it holds."""
    groups = {quadrant: [] for quadrant in QUADRANT_ORDER}
    for point in points:
        groups[point['quadrant']].append(point['factor_index'])
    return groups


def get_cluster_characteristics():
    """
    Get characteristics description for each quadrant.

    Returns:
    --------
    dict
        Quadrant name -> numeral, position, strengths, description, implication
    """
    return {
        AUTONOMOUS: {
            'quadrant': 'I',
            'position': 'Bottom-Left',
            'driving': 'Weak',
            'dependence': 'Weak',
            'description': 'These factors are relatively disconnected from the system. '
                           'They have weak driving power and weak dependence on other factors.',
            'implication': 'Low priority factors that neither significantly drive nor are '
                           'significantly driven by other factors.'
        },
        DEPENDENT: {
            'quadrant': 'II',
            'position': 'Bottom-Right',
            'driving': 'Weak',
            'dependence': 'Strong',
            'description': 'These factors are highly dependent on other factors but have '
                           'little driving power themselves.',
            'implication': 'These are EFFECT factors. Addressing root causes will impact these.'
        },
        LINKAGE: {
            'quadrant': 'III',
            'position': 'Top-Right',
            'driving': 'Strong',
            'dependence': 'Strong',
            'description': 'These factors are unstable. They have strong driving power but are '
                           'also strongly dependent on other factors.',
            'implication': 'Any action on them has cascading effects through the system.'
        },
        DRIVER: {
            'quadrant': 'IV',
            'position': 'Top-Left',
            'driving': 'Strong',
            'dependence': 'Weak',
            'description': 'These factors are strong drivers with low dependence '
                           '(also called independent factors).',
            'implication': 'These are ROOT CAUSES. Priority targets for intervention.'
        }
    }


# =============================================================================
# MICMAC VISUALIZATION
# =============================================================================

def format_factor_label(factor, max_width=None):
    """Factor name wrapped to at most max_width characters per line."""
    if max_width is None:
        max_width = FACTOR_LABEL_MAX_WIDTH

    return '\n'.join(textwrap.wrap(factor['name'], width=max_width)) or factor['name']


def calculate_label_offsets(points):
    """
    Offsets (in points) for factor labels so coincident points fan out.

    Returns:
    --------
    list
        (offset_x, offset_y, ha, va) per point, in point order
    """
    coord_groups = {}
    for idx, point in enumerate(points):
        coord = (point['dependence_power'], point['driving_power'])
        coord_groups.setdefault(coord, []).append(idx)

    offsets = [None] * len(points)
    radius = 22

    for indices in coord_groups.values():
        angles = np.linspace(np.pi / 4, np.pi / 4 + 2 * np.pi, len(indices), endpoint=False)
        for idx, angle in zip(indices, angles):
            ox = int(np.cos(angle) * radius)
            oy = int(np.sin(angle) * radius)
            offsets[idx] = (ox, oy, 'left' if ox >= 0 else 'right', 'bottom' if oy >= 0 else 'top')

    return offsets


def create_micmac_plot(micmac, factors, figsize=None):
    """
    Create MICMAC scatter plot with four quadrants.

    Parameters:
    -----------
    micmac : dict
        Result of classify_micmac()
    factors : list
        Factor dictionaries
    figsize : tuple, optional
        Figure size. If None, uses (FIGURE_WIDTH, FIGURE_HEIGHT)

    Returns:
    --------
    matplotlib.figure.Figure
    """
    if figsize is None:
        figsize = (FIGURE_WIDTH, FIGURE_HEIGHT)

    points = micmac['points']
    split_point = micmac['split_point']
    n = len(factors)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    fig.patch.set_facecolor(FIGURE_BG_COLOR)
    ax.set_facecolor(FIGURE_BG_COLOR)

    x_min, x_max = 0.5, n + 0.5
    y_min, y_max = 0.5, n + 0.5

    ax.grid(True, color=GRID_COLOR, alpha=GRID_ALPHA, linewidth=GRID_LINEWIDTH, zorder=0)
    ax.axhline(y=split_point, color=MIDLINE_COLOR, linestyle=MIDLINE_STYLE,
               linewidth=MIDLINE_WIDTH, zorder=1)
    ax.axvline(x=split_point, color=MIDLINE_COLOR, linestyle=MIDLINE_STYLE,
               linewidth=MIDLINE_WIDTH, zorder=1)

    for point in points:
        ax.scatter(point['dependence_power'], point['driving_power'],
                   c=POINT_COLORS[point['quadrant']], s=MARKER_SIZE,
                   edgecolors=MARKER_EDGE_COLOR, linewidths=MARKER_EDGE_WIDTH, zorder=5)

    for point, (ox, oy, ha, va) in zip(points, calculate_label_offsets(points)):
        ax.annotate(
            format_factor_label(factors[point['factor_index']]),
            (point['dependence_power'], point['driving_power']),
            xytext=(ox, oy),
            textcoords='offset points',
            fontsize=FACTOR_LABEL_SIZE,
            fontfamily=FONT_FAMILY,
            ha=ha,
            va=va,
            zorder=10,
            arrowprops=dict(arrowstyle='-', color=LEADER_LINE_COLOR, linewidth=0.8, shrinkB=6)
        )

    characteristics = get_cluster_characteristics()
    corners = {
        AUTONOMOUS: (x_min, y_min, 'left', 'bottom'),
        DEPENDENT: (x_max, y_min, 'right', 'bottom'),
        LINKAGE: (x_max, y_max, 'right', 'top'),
        DRIVER: (x_min, y_max, 'left', 'top'),
    }
    for quadrant, (x, y, ha, va) in corners.items():
        ax.text(x, y, f"{characteristics[quadrant]['quadrant']}. {quadrant}",
                ha=ha, va=va, fontsize=QUADRANT_LABEL_SIZE, fontstyle='italic',
                fontfamily=FONT_FAMILY, color=QUADRANT_LABEL_COLOR)

    ax.set_xlabel('Dependence Power', fontsize=AXIS_LABEL_SIZE, fontweight='bold',
                  fontfamily=FONT_FAMILY)
    ax.set_ylabel('Driving Power', fontsize=AXIS_LABEL_SIZE, fontweight='bold',
                  fontfamily=FONT_FAMILY)
    ax.set_xlim(x_min, x_max)
    ax.set_ylim(y_min, y_max)
    ax.set_xticks(range(1, n + 1))
    ax.set_yticks(range(1, n + 1))
    ax.tick_params(axis='both', which='major', labelsize=TICK_LABEL_SIZE)

    legend_elements = [
        mpatches.Patch(facecolor=POINT_COLORS[quadrant], edgecolor='none', label=quadrant)
        for quadrant in QUADRANT_ORDER
    ]
    legend = ax.legend(handles=legend_elements, loc='upper right', bbox_to_anchor=(0.98, 0.92),
                       fontsize=LEGEND_FONT_SIZE, frameon=True, fancybox=False,
                       edgecolor='#CCCCCC', framealpha=0.95)
    legend.get_frame().set_linewidth(0.5)

    plt.tight_layout()

    return fig


# =============================================================================
# DATAFRAME CREATION
# =============================================================================

def create_micmac_dataframe(micmac, factors):
    """
    Create MICMAC classification DataFrame.

    Sorted drivers first, then by driving power (descending).
    """
    characteristics = get_cluster_characteristics()
    columns = ['Factor_Code', 'Factor_Name', 'Driving_Power', 'Dependence_Power',
               'Cluster', 'Quadrant', 'Position', 'Driver_Strength', 'Dependence_Strength']

    data = []
    for point in micmac['points']:
        factor = factors[point['factor_index']]
        char = characteristics[point['quadrant']]

        data.append({
            'Factor_Code': factor['name'],
            'Factor_Name': factor['description'] or factor['name'],
            'Driving_Power': point['driving_power'],
            'Dependence_Power': point['dependence_power'],
            'Cluster': point['quadrant'],
            'Quadrant': char['quadrant'],
            'Position': char['position'],
            'Driver_Strength': char['driving'],
            'Dependence_Strength': char['dependence']
        })

    df = pd.DataFrame(data, columns=columns)
    if df.empty:
        return df

    cluster_order = {quadrant: rank for rank, quadrant in enumerate(QUADRANT_ORDER)}
    df['_sort_order'] = df['Cluster'].map(cluster_order)
    df = df.sort_values(['_sort_order', 'Driving_Power'], ascending=[True, False], kind='stable')
    df = df.drop('_sort_order', axis=1).reset_index(drop=True)

    return df


def create_cluster_summary_dataframe(micmac, factors):
    """Create cluster summary DataFrame (one row per quadrant)."""
    characteristics = get_cluster_characteristics()
    groups = group_by_quadrant(micmac['points'])

    data = []
    for quadrant in QUADRANT_ORDER:
        char = characteristics[quadrant]
        members = [factors[i]['name'] for i in groups[quadrant]]

        data.append({
            'Cluster': quadrant,
            'Quadrant': char['quadrant'],
            'Position': char['position'],
            'Driver': char['driving'],
            'Dependence': char['dependence'],
            'Count': len(members),
            'Factors': ', '.join(members) if members else 'None',
            'Implication': char['implication']
        })

    return pd.DataFrame(data)


def create_calculation_info_dataframe(boundaries, split_point, n_factors):
    """Create calculation information DataFrame."""
    return pd.DataFrame({
        'Parameter': [
            'n (number of factors)',
            'DP_max',
            'DP_min',
            'DEP_max',
            'DEP_min',
            f'Split point (formula: n/2 = {n_factors}/2)',
            'Boundary rule',
            'Reference'
        ],
        'Value': [
            n_factors,
            boundaries['dp_max'],
            boundaries['dp_min'],
            boundaries['dep_max'],
            boundaries['dep_min'],
            split_point,
            'Power equal to the split point counts as low',
            'Warfield (1974), Mandal & Deshmukh (1994)'
        ]
    })


# =============================================================================
# OUTPUT FUNCTIONS
# =============================================================================

def save_micmac_results(micmac_df, summary_df, calc_info_df, fig, output_dir=None):
    """
    Save MICMAC results to files.

    Output files:
    - ism_micmac.xlsx: Classification and summary
    - ism_micmac.png: Scatter plot visualization (when a figure is given)

    Returns:
    --------
    list
        Paths to saved files
    """
    output_path = prepare_output_dir(output_dir)

    excel_file = write_workbook(output_path / "ism_micmac.xlsx", [
        ('MICMAC_Classification', micmac_df, False),
        ('Cluster_Summary', summary_df, False),
        ('Calculation_Info', calc_info_df, False),
    ])
    saved_files = [excel_file]
    print(f"MICMAC results saved to: {excel_file}")

    if fig is not None:
        png_file = output_path / "ism_micmac.png"
        try:
            fig.savefig(png_file, dpi=FIGURE_DPI, bbox_inches='tight',
                        facecolor=FIGURE_BG_COLOR, edgecolor='none')
        finally:
            plt.close(fig)
        saved_files.append(png_file)
        print(f"MICMAC plot saved to: {png_file}")

    return saved_files


def print_micmac_summary(micmac, boundaries, factors):
    """Print MICMAC analysis summary."""
    n = len(factors)
    split_point = micmac['split_point']

    print("-" * 70)
    print("MICMAC ANALYSIS SUMMARY")
    print("-" * 70)
    print(f"Number of Factors: {n}")
    print()

    print("BOUNDARY CALCULATIONS:")
    print(f"  DP:  min={boundaries['dp_min']}, max={boundaries['dp_max']}")
    print(f"  DEP: min={boundaries['dep_min']}, max={boundaries['dep_max']}")
    print()

    print(f"SPLIT POINT: n/2 = {n}/2 = {split_point:.2f}")
    print()

    print("CLASSIFICATION RULES:")
    print("  I.   Autonomous: DP <= split AND DEP <= split")
    print("  II.  Dependent:  DP <= split AND DEP > split")
    print("  III. Linkage:    DP > split AND DEP > split")
    print("  IV.  Driver:     DP > split AND DEP <= split")
    print()

    groups = group_by_quadrant(micmac['points'])
    points = {point['factor_index']: point for point in micmac['points']}

    print("CLASSIFICATION RESULTS:")
    for quadrant in QUADRANT_ORDER:
        members = groups[quadrant]
        print(f"\n  {quadrant.upper()} ({len(members)} factors):")
        if not members:
            print("    (None)")
        for i in members:
            print(f"    - {get_factor_label(factors[i])}")
            print(f"      DP={points[i]['driving_power']}, DEP={points[i]['dependence_power']}")
    print()

    print("-" * 70)


# =============================================================================
# MAIN FUNCTION
# =============================================================================

def perform_micmac_analysis(frm=None, factors=None, frm_results=None,
                            save=True, output_dir=None):
    """
    Main function to perform MICMAC analysis.

    Parameters:
    -----------
    frm : numpy.ndarray, optional
        Final Reachability Matrix. If None, taken from frm_results or Module 3.
    factors : list, optional
        Factor dictionaries (required together with frm).
    frm_results : dict, optional
        Results from Module 3.
    save : bool, optional
        Whether to save outputs.
    output_dir : str or Path, optional
        Output directory.

    Returns:
    --------
    dict
        Dictionary containing:
        - 'micmac': {'split_point', 'points'} from classify_micmac()
        - 'clusters': Factor index -> quadrant name
        - 'boundaries': Boundary values
        - 'micmac_df', 'summary_df', 'calc_info_df': DataFrames for export
        - 'fig': MICMAC scatter plot (None when there are no factors)
        - 'output_files': Paths to saved files
    """
    print("\n" + "=" * 70)
    print("MODULE 6: MICMAC ANALYSIS")
    print("=" * 70 + "\n")

    # Step 1: Get FRM
    if frm is None or factors is None:
        if frm_results is not None:
            print("Using FRM from provided Module 3 results.\n")
        else:
            print("Running Module 3 to get Final Reachability Matrix...")
            frm_results = create_reachability_matrix(save=False)
        frm = frm_results['frm']
        factors = frm_results['factors']

    n = len(factors)
    print(f"Number of factors: {n}\n")

    # Step 2: Classify
    print("Classifying factors into quadrants (split = n/2)...")
    micmac = classify_micmac(frm)
    clusters = {point['factor_index']: point['quadrant'] for point in micmac['points']}
    for quadrant, members in group_by_quadrant(micmac['points']).items():
        print(f"  {quadrant}: {len(members)} factors")
    print()

    # Step 3: Boundaries
    driving_power = np.array([p['driving_power'] for p in micmac['points']], dtype=int)
    dependence_power = np.array([p['dependence_power'] for p in micmac['points']], dtype=int)
    boundaries = calculate_boundaries(driving_power, dependence_power)

    # Step 4: Print summary
    print_micmac_summary(micmac, boundaries, factors)

    # Step 5: Create DataFrames
    print("\nCreating DataFrames...")
    micmac_df = create_micmac_dataframe(micmac, factors)
    summary_df = create_cluster_summary_dataframe(micmac, factors)
    calc_info_df = create_calculation_info_dataframe(boundaries, micmac['split_point'], n)
    print("  DataFrames created.\n")

    # Step 6: Create visualization
    fig = None
    if n > 0:
        print("Creating MICMAC scatter plot...")
        fig = create_micmac_plot(micmac, factors)
        print("  Plot created.\n")

    # Step 7: Save outputs
    output_files = None
    if save:
        print("Saving outputs...")
        output_files = save_micmac_results(micmac_df, summary_df, calc_info_df, fig, output_dir)

    results = {
        'micmac': micmac,
        'clusters': clusters,
        'boundaries': boundaries,
        'driving_power': driving_power,
        'dependence_power': dependence_power,
        'micmac_df': micmac_df,
        'summary_df': summary_df,
        'calc_info_df': calc_info_df,
        'fig': fig,
        'factors': factors,
        'n': n,
        'output_files': output_files
    }

    print("\n" + "=" * 70)
    print("MODULE 6 COMPLETED SUCCESSFULLY")
    print("=" * 70 + "\n")

    return results


# =============================================================================
# STANDALONE EXECUTION
# =============================================================================

if __name__ == "__main__":
    print("Running Module 6 in standalone mode...")
    results = perform_micmac_analysis()

    print("\n" + "=" * 70)
    print("MICMAC CLASSIFICATION")
    print("=" * 70)
    print(results['micmac_df'].to_string(index=False))
