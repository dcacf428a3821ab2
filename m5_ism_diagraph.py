# SPDX-License-Identifier: PROPRIETARY
# File: m5_ism_diagraph.py
# Purpose: Module 5 - ISM canonical matrix, hierarchical digraph and interrelationship graph

"""
ISM Digraph Construction

This module derives the canonical (reduced) adjacency view of the Final
Reachability Matrix and draws the hierarchical directed graph (digraph)
of the factors on their ISM levels. A second, circular graph shows every
direct relationship of the Initial Reachability Matrix.

Mathematical Procedures:
------------------------

1. MUTUAL REACHABILITY:
   i ~ j  IF  r_ij = 1 AND r_ji = 1
   Factors in the same class reach each other (X relationships, cycles).

2. CANONICAL MATRIX:
   c_ij = 1 IF:
   - i ≠ j
   - AND r_ij = 1
   - AND there is no k with r_ik = 1 AND r_kj = 1
     where k is mutually reachable with neither i nor j

   Edges inside a mutual-reachability class are all kept. An edge between
   two classes is kept only when no third class lies between them, so
   transitive shortcuts are removed. The diagonal is 0.

3. DIRECT RELATIONSHIPS (drawn edges):
   Edge from i to j exists IF m_ij = 1 AND i ≠ j, where M is the
   Initial Reachability Matrix (default) or the canonical matrix.

4. HIERARCHICAL LAYOUT:
   - Level 1 factors at the TOP of diagram (effects/outcomes)
   - Higher numbered levels at the BOTTOM (root causes)
   - Arrows point from higher level numbers to lower level numbers

5. INTERRELATIONSHIP GRAPH:
   - Every IRM edge drawn on a circular layout, first factor at the top
   - Mutual pairs as one double-headed arrow, nodes coloured by category
"""

import textwrap

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.lines import Line2D
from matplotlib.patches import FancyArrowPatch, FancyBboxPatch

# Import from previous modules
from m1_data_processing import (
    get_factor_label,
    prepare_output_dir,
    write_workbook
)
from m3_ism_frm import create_reachability_matrix
from m4_ism_lp import perform_level_partitioning

# =============================================================================
# CONFIGURABLE PARAMETERS
# =============================================================================

# Which matrix supplies the drawn edges: 'irm' (direct judgments) or 'canonical'
EDGE_SOURCE = 'irm'

# Figure settings
FIGURE_WIDTH = 14                # Figure width in inches
FIGURE_HEIGHT = 12               # Figure height in inches
FIGURE_DPI = 300                 # Output resolution
FIGURE_BG_COLOR = '#FFFFFF'

# Node settings
NODE_WIDTH = 3.8                 # Node width in data units
NODE_HEIGHT = 1.8                # Node height in data units
NODE_CORNER_RADIUS = 0.12
NODE_EDGE_WIDTH = 1.2
NODE_EDGE_COLOR = '#4A4A4A'
NODE_TEXT_WRAP_WIDTH = 18        # Maximum characters per line

# Layout settings
HORIZONTAL_SPACING = 4.5         # Horizontal spacing between nodes at same level
VERTICAL_SPACING = 3.2           # Vertical spacing between levels
LEVEL_BAND_HEIGHT = 3.0
LEVEL_BAND_ALPHA = 0.20

# Arrow settings
ARROW_STYLE = '-|>'
BIDIRECTIONAL_ARROW_STYLE = '<|-|>'
ARROW_MUTATION_SCALE = 18
ARROW_HEAD_LENGTH = 0.4
ARROW_HEAD_WIDTH = 0.25
ARROW_PADDING = 0.05             # Gap between arrow tips and node edges
ARROW_CURVE_RAD_BASE = 0.12
SAME_LEVEL_ARC_RAD = -0.35       # Negative = arc upward
UPWARD_ARROW_COLOR = '#2171B5'       # Influence (cause to effect)
DOWNWARD_ARROW_COLOR = '#D94801'     # Feedback
SAME_LEVEL_ARROW_COLOR = '#7B3294'
BIDIRECTIONAL_ARROW_COLOR = '#7B3294'
ARROW_WIDTH = 1.4
ARROW_ALPHA = 0.85

# Font settings
FONT_FAMILY = 'sans-serif'
NODE_FONT_SIZE = 12
NODE_FONT_COLOR = '#2D2D2D'
LEVEL_LABEL_FONT_SIZE = 14
LEVEL_LABEL_FONT_COLOR = '#606060'
LEGEND_FONT_SIZE = 11
LEVEL_LABEL_OFFSET = 0.6

SHOW_LEGEND = True

# Level colors - Okabe-Ito colorblind-safe palette (desaturated)
LEVEL_COLORS = {
    1: '#D4EBF7',
    2: '#C5EBE0',
    3: '#FADDD0',
    4: '#F9E5B5',
    5: '#EDCEE3',
    6: '#F9F3C0',
    7: '#CEDDED',
    8: '#E0E0E0',
}

# Interrelationship graph settings
CIRCLE_RADIUS = 5.0              # Radius of the circular layout in data units
CIRCLE_NODE_RADIUS = 0.6
CIRCLE_NODE_EDGE_WIDTH = 3.0
CIRCLE_FIGURE_SIZE = 12
ONE_WAY_ARROW_COLOR = '#94A3B8'
ONE_WAY_ARROW_WIDTH = 1.5
ONE_WAY_ARROW_ALPHA = 0.6
MUTUAL_ARROW_COLOR = '#8B5CF6'
MUTUAL_ARROW_WIDTH = 2.5

# Node outline colour per factor category
CATEGORY_COLORS = {
    'Policy': '#2563EB',
    'Process': '#059669',
    'Technology': '#D97706',
    'People': '#DB2777',
    'Environment': '#0891B2',
    'Cost': '#DC2626',
}
DEFAULT_CATEGORY_COLOR = '#64748B'

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def int_to_roman(num):
    """Roman numeral for 1 <= num <= 3999 (level labels)."""
    numerals = [(1000, 'M'), (900, 'CM'), (500, 'D'), (400, 'CD'), (100, 'C'), (90, 'XC'),
                (50, 'L'), (40, 'XL'), (10, 'X'), (9, 'IX'), (5, 'V'), (4, 'IV'), (1, 'I')]
    parts = []
    for value, symbol in numerals:
        count, num = divmod(num, value)
        parts.append(symbol * count)
    return ''.join(parts)


# =============================================================================
# CANONICAL MATRIX
# =============================================================================

def find_mutual_reachability(frm):
    """
    Boolean matrix of mutual reachability: m_ij = r_ij AND r_ji.

    Parameters:
    -----------
    frm : numpy.ndarray
        Final Reachability Matrix

    Returns:
    --------
    numpy.ndarray
        Boolean n × n matrix
    """
    frm = np.asarray(frm, dtype=bool)
    return frm & frm.T


def find_mutual_reachability_classes(frm):
    """
    Group factors into mutual-reachability classes.

    Returns:
    --------
    list
        Lists of factor indices, each ascending, ordered by smallest member
    """
    mutual = find_mutual_reachability(frm)
    n = len(mutual)

    classes = []
    assigned = set()
    for i in range(n):
        if i in assigned:
            continue
        members = sorted({i} | {int(j) for j in np.where(mutual[i])[0]})
        assigned.update(members)
        classes.append(members)

    return classes


def create_canonical_matrix(frm):
    """
    Create the canonical (reduced) adjacency matrix from the FRM.

    Rule:
    -----
    c_ij = 1 iff i ≠ j, r_ij = 1, and no k exists with r_ik = r_kj = 1
    where k is mutually reachable with neither i nor j.

    Parameters:
    -----------
    frm : numpy.ndarray
        Final Reachability Matrix (transitive)

    Returns:
    --------
    numpy.ndarray
        Canonical matrix (int, n × n, zero diagonal)
    """
    reach = np.asarray(frm, dtype=bool)
    n = len(reach)
    mutual = find_mutual_reachability(reach)
    canonical = np.zeros((n, n), dtype=int)

    for i in range(n):
        for j in range(n):
            if i == j or not reach[i, j]:
                continue

            between = reach[i, :] & reach[:, j] & ~mutual[:, i] & ~mutual[:, j]
            between[i] = False
            between[j] = False

            if not between.any():
                canonical[i, j] = 1

    return canonical


# =============================================================================
# EDGE EXTRACTION
# =============================================================================

def extract_edges(binary_matrix):
    """
    Off-diagonal 1-cells of a binary matrix as (from_index, to_index) pairs.

    Indices are 0-based; pairs come in row-major order.
    """
    binary_matrix = np.array(binary_matrix, dtype=int)
    np.fill_diagonal(binary_matrix, 0)
    return [(int(i), int(j)) for i, j in zip(*np.nonzero(binary_matrix == 1))]


def filter_edges_by_levels(edges, factor_levels):
    """
    Group edges by how they cross the level structure.

    Returns:
    --------
    dict
        - 'upward': higher level number to lower (cause to effect)
        - 'downward': lower level number to higher (feedback)
        - 'intra_level': both ends on one level
        - 'inter_level': upward + downward, in edge order
    """
    groups = {'upward': [], 'downward': [], 'intra_level': [], 'inter_level': []}

    for edge in edges:
        from_level = factor_levels.get(edge[0], 0)
        to_level = factor_levels.get(edge[1], 0)
        if from_level == to_level:
            groups['intra_level'].append(edge)
            continue
        groups['inter_level'].append(edge)
        groups['upward' if from_level > to_level else 'downward'].append(edge)

    return groups


def identify_reciprocal_edges(edges):
    """
    Split edges into reciprocal pairs and one-way edges.

    A reciprocal pair is reported once as (min_idx, max_idx), in order of
    first appearance, and drawn as one double-headed arrow.
    """
    edge_set = set(edges)
    reciprocal = []
    unidirectional = []

    for from_idx, to_idx in edges:
        if (to_idx, from_idx) not in edge_set:
            unidirectional.append((from_idx, to_idx))
            continue
        pair = (min(from_idx, to_idx), max(from_idx, to_idx))
        if pair not in reciprocal:
            reciprocal.append(pair)

    return {
        'reciprocal': reciprocal,
        'unidirectional': unidirectional
    }


# =============================================================================
# LAYOUT CALCULATION
# =============================================================================

def calculate_hierarchical_positions(levels):
    """
    Calculate node positions for hierarchical layout.

    Layout Convention:
    ------------------
    - Level 1 at TOP (y = max_level * VERTICAL_SPACING)
    - Highest level number at BOTTOM (y = VERTICAL_SPACING)
    - Factors within a level centred and spaced horizontally

    Parameters:
    -----------
    levels : list
        Level records {'level': k, 'elements': [indices]}

    Returns:
    --------
    dict
        Factor index -> (x, y) position
    """
    positions = {}
    if not levels:
        return positions

    max_level = max(level['level'] for level in levels)

    for level in levels:
        y_position = (max_level - level['level'] + 1) * VERTICAL_SPACING

        elements = sorted(level['elements'])
        total_width = (len(elements) - 1) * HORIZONTAL_SPACING
        start_x = -total_width / 2

        for idx, factor in enumerate(elements):
            positions[factor] = (start_x + idx * HORIZONTAL_SPACING, y_position)

    return positions


def calculate_circular_positions(n, radius=None):
    """
    Place n factors evenly on a circle for the interrelationship graph.

    The first factor sits at the top and the rest follow clockwise.

    Returns:
    --------
    dict
        Factor index -> (x, y) position
    """
    if radius is None:
        radius = CIRCLE_RADIUS

    positions = {}
    for i in range(n):
        angle = np.pi / 2 - 2 * np.pi * i / n
        positions[i] = (float(radius * np.cos(angle)), float(radius * np.sin(angle)))

    return positions


def calculate_arrow_endpoints(start, end, from_level, to_level):
    """Pull arrow endpoints back from node centres to node edges."""
    (x1, y1), (x2, y2) = start, end
    half_width = NODE_WIDTH / 2
    half_height = NODE_HEIGHT / 2

    if from_level == to_level:
        direction = 1 if x2 > x1 else -1
        return ((x1 + direction * (half_width + ARROW_PADDING), y1),
                (x2 - direction * (half_width + ARROW_PADDING), y2))

    direction = 1 if y2 > y1 else -1
    return ((x1, y1 + direction * (half_height + ARROW_PADDING)),
            (x2, y2 - direction * (half_height + ARROW_PADDING)))


def get_connection_style(from_level, to_level, x1, x2, from_idx=0, to_idx=0):
    """Matplotlib connectionstyle giving distinct curves to overlapping arrows."""
    if from_level == to_level:
        return f"arc3,rad={SAME_LEVEL_ARC_RAD + (from_idx - to_idx) * 0.03}"

    dx = x2 - x1
    if abs(dx) < 0.5:
        base_rad = 0.06 * (1 if (from_idx + to_idx) % 2 == 0 else -1)
    else:
        base_rad = ARROW_CURVE_RAD_BASE if dx > 0 else -ARROW_CURVE_RAD_BASE

    pair_offset = ((from_idx * 10 + to_idx) % 7 - 3) * 0.025
    final_rad = max(-0.35, min(0.35, base_rad + pair_offset))

    return f"arc3,rad={final_rad}"


# =============================================================================
# DIGRAPH VISUALIZATION
# =============================================================================

def create_digraph(edges, positions, levels, factor_levels, factors, figsize=None):
    """
    Create hierarchical digraph visualization.

    Parameters:
    -----------
    edges : list
        (from_index, to_index) tuples
    positions : dict
        Factor index -> (x, y) position
    levels : list
        Level records {'level': k, 'elements': [indices]}
    factor_levels : dict
        Factor index -> level number
    factors : list
        Factor dictionaries
    figsize : tuple, optional
        Figure size (width, height). If None, uses configured defaults.

    Returns:
    --------
    matplotlib.figure.Figure
    """
    if figsize is None:
        figsize = (FIGURE_WIDTH, FIGURE_HEIGHT)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    fig.patch.set_facecolor(FIGURE_BG_COLOR)
    ax.set_facecolor(FIGURE_BG_COLOR)

    max_level = max(level['level'] for level in levels)

    x_min = min(pos[0] for pos in positions.values()) - NODE_WIDTH - 0.5
    x_max = max(pos[0] for pos in positions.values()) + NODE_WIDTH + 0.5

    # Level bands and labels
    for level in levels:
        level_num = level['level']
        y = (max_level - level_num + 1) * VERTICAL_SPACING
        ax.add_patch(plt.Rectangle(
            (x_min, y - LEVEL_BAND_HEIGHT / 2),
            x_max - x_min,
            LEVEL_BAND_HEIGHT,
            facecolor=LEVEL_COLORS.get(level_num, '#F5F5F5'),
            alpha=LEVEL_BAND_ALPHA,
            edgecolor='none',
            zorder=0
        ))

        annotation = ""
        if max_level > 1 and level_num == max_level:
            annotation = "\n\n(Driving)"
        elif max_level > 1 and level_num == 1:
            annotation = "\n\n(Dependent)"

        ax.text(
            x_min - LEVEL_LABEL_OFFSET, y,
            f'Level {int_to_roman(level_num)}{annotation}',
            fontsize=LEVEL_LABEL_FONT_SIZE,
            fontfamily=FONT_FAMILY,
            va='center',
            ha='right',
            color=LEVEL_LABEL_FONT_COLOR
        )

    edge_types = identify_reciprocal_edges(edges)

    # Bidirectional arrows
    for idx1, idx2 in edge_types['reciprocal']:
        level1 = factor_levels[idx1]
        level2 = factor_levels[idx2]
        start, end = calculate_arrow_endpoints(positions[idx1], positions[idx2], level1, level2)
        ax.add_patch(FancyArrowPatch(
            start, end,
            arrowstyle=f'{BIDIRECTIONAL_ARROW_STYLE},head_length={ARROW_HEAD_LENGTH},head_width={ARROW_HEAD_WIDTH}',
            mutation_scale=ARROW_MUTATION_SCALE,
            connectionstyle=get_connection_style(level1, level2, positions[idx1][0],
                                                 positions[idx2][0], idx1, idx2),
            color=BIDIRECTIONAL_ARROW_COLOR,
            linewidth=ARROW_WIDTH,
            alpha=ARROW_ALPHA,
            zorder=1
        ))

    # Unidirectional arrows
    for from_idx, to_idx in edge_types['unidirectional']:
        from_level = factor_levels[from_idx]
        to_level = factor_levels[to_idx]

        if from_level > to_level:
            color = UPWARD_ARROW_COLOR
        elif from_level < to_level:
            color = DOWNWARD_ARROW_COLOR
        else:
            color = SAME_LEVEL_ARROW_COLOR

        start, end = calculate_arrow_endpoints(positions[from_idx], positions[to_idx],
                                               from_level, to_level)
        ax.add_patch(FancyArrowPatch(
            start, end,
            arrowstyle=f'{ARROW_STYLE},head_length={ARROW_HEAD_LENGTH},head_width={ARROW_HEAD_WIDTH}',
            mutation_scale=ARROW_MUTATION_SCALE,
            connectionstyle=get_connection_style(from_level, to_level, positions[from_idx][0],
                                                 positions[to_idx][0], from_idx, to_idx),
            color=color,
            linewidth=ARROW_WIDTH,
            alpha=ARROW_ALPHA,
            zorder=1
        ))

    # Nodes
    for factor_idx, (x, y) in positions.items():
        level = factor_levels[factor_idx]
        ax.add_patch(FancyBboxPatch(
            (x - NODE_WIDTH / 2, y - NODE_HEIGHT / 2),
            NODE_WIDTH,
            NODE_HEIGHT,
            boxstyle=f"round,pad=0.05,rounding_size={NODE_CORNER_RADIUS}",
            facecolor=LEVEL_COLORS.get(level, '#FFFFFF'),
            edgecolor=NODE_EDGE_COLOR,
            linewidth=NODE_EDGE_WIDTH,
            zorder=2
        ))

        ax.text(
            x, y,
            textwrap.fill(get_factor_label(factors[factor_idx]), width=NODE_TEXT_WRAP_WIDTH),
            fontsize=NODE_FONT_SIZE,
            fontfamily=FONT_FAMILY,
            ha='center',
            va='center',
            color=NODE_FONT_COLOR,
            zorder=3
        )

    y_min = min(pos[1] for pos in positions.values()) - VERTICAL_SPACING * 0.6
    y_max = max(pos[1] for pos in positions.values()) + VERTICAL_SPACING * 0.6

    ax.set_xlim(x_min - 2.5, x_max + 0.3)
    ax.set_ylim(y_min, y_max)
    ax.set_aspect('equal')
    ax.axis('off')

    if SHOW_LEGEND:
        legend_elements = [
            Line2D([0], [0], color=UPWARD_ARROW_COLOR, linewidth=2.5,
                   label='Influence (Cause → Effect)'),
            Line2D([0], [0], color=DOWNWARD_ARROW_COLOR, linewidth=2.5,
                   label='Feedback'),
            Line2D([0], [0], color=BIDIRECTIONAL_ARROW_COLOR, linewidth=2.5,
                   label='Reciprocal / Same Level'),
        ]
        legend = ax.legend(
            handles=legend_elements,
            loc='lower right',
            fontsize=LEGEND_FONT_SIZE,
            frameon=True,
            fancybox=False,
            edgecolor='#D0D0D0',
            framealpha=0.92
        )
        legend.get_frame().set_linewidth(0.6)

    plt.tight_layout()

    return fig


# =============================================================================
# INTERRELATIONSHIP GRAPH
# =============================================================================

def get_category_color(category):
    """Node outline colour for a factor category."""
    return CATEGORY_COLORS.get(category, DEFAULT_CATEGORY_COLOR)


def calculate_circle_endpoints(start, end):
    """Pull a straight edge back so it starts and ends at the circle outlines."""
    (x1, y1), (x2, y2) = start, end
    length = np.hypot(x2 - x1, y2 - y1)
    if length == 0:
        return start, end

    offset = (CIRCLE_NODE_RADIUS + ARROW_PADDING) / length
    dx, dy = (x2 - x1) * offset, (y2 - y1) * offset
    return (x1 + dx, y1 + dy), (x2 - dx, y2 - dy)


def create_interrelationship_graph(irm, factors, figsize=None):
    """
    Draw every direct relationship of the IRM on a circular layout.

    Mutual pairs (X judgments) are drawn once as a purple double-headed
    arrow, one-way relationships as grey arrows. Node outlines take the
    colour of the factor category.

    Parameters:
    -----------
    irm : numpy.ndarray
        Initial Reachability Matrix
    factors : list
        Factor dictionaries
    figsize : tuple, optional
        Figure size (width, height). If None, a square CIRCLE_FIGURE_SIZE.

    Returns:
    --------
    matplotlib.figure.Figure
    """
    if figsize is None:
        figsize = (CIRCLE_FIGURE_SIZE, CIRCLE_FIGURE_SIZE)

    positions = calculate_circular_positions(len(factors))
    edge_types = identify_reciprocal_edges(extract_edges(irm))

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    fig.patch.set_facecolor(FIGURE_BG_COLOR)
    ax.set_facecolor(FIGURE_BG_COLOR)

    for from_idx, to_idx in edge_types['unidirectional']:
        start, end = calculate_circle_endpoints(positions[from_idx], positions[to_idx])
        ax.add_patch(FancyArrowPatch(
            start, end,
            arrowstyle=f'{ARROW_STYLE},head_length={ARROW_HEAD_LENGTH},head_width={ARROW_HEAD_WIDTH}',
            mutation_scale=ARROW_MUTATION_SCALE,
            color=ONE_WAY_ARROW_COLOR,
            linewidth=ONE_WAY_ARROW_WIDTH,
            alpha=ONE_WAY_ARROW_ALPHA,
            zorder=1
        ))

    for idx1, idx2 in edge_types['reciprocal']:
        start, end = calculate_circle_endpoints(positions[idx1], positions[idx2])
        ax.add_patch(FancyArrowPatch(
            start, end,
            arrowstyle=f'{BIDIRECTIONAL_ARROW_STYLE},head_length={ARROW_HEAD_LENGTH},head_width={ARROW_HEAD_WIDTH}',
            mutation_scale=ARROW_MUTATION_SCALE,
            color=MUTUAL_ARROW_COLOR,
            linewidth=MUTUAL_ARROW_WIDTH,
            zorder=1
        ))

    for factor_idx, (x, y) in positions.items():
        factor = factors[factor_idx]
        ax.add_patch(plt.Circle(
            (x, y), CIRCLE_NODE_RADIUS,
            facecolor='white',
            edgecolor=get_category_color(factor.get('category')),
            linewidth=CIRCLE_NODE_EDGE_WIDTH,
            zorder=2
        ))
        ax.text(
            x, y, factor['name'],
            fontsize=NODE_FONT_SIZE,
            fontfamily=FONT_FAMILY,
            fontweight='bold',
            ha='center',
            va='center',
            color=NODE_FONT_COLOR,
            zorder=3
        )

    limit = CIRCLE_RADIUS + CIRCLE_NODE_RADIUS + 0.8
    ax.set_xlim(-limit, limit)
    ax.set_ylim(-limit, limit)
    ax.set_aspect('equal')
    ax.axis('off')

    if SHOW_LEGEND:
        legend_elements = [
            Line2D([0], [0], color=ONE_WAY_ARROW_COLOR, linewidth=2.5, label='One-way (Direct)'),
            Line2D([0], [0], color=MUTUAL_ARROW_COLOR, linewidth=2.5, label='Two-way (Mutual)'),
        ]
        categories = []
        for factor in factors:
            if factor.get('category') and factor['category'] not in categories:
                categories.append(factor['category'])
        for category in categories:
            legend_elements.append(Line2D(
                [0], [0], marker='o', linestyle='none', markersize=11,
                markerfacecolor='white', markeredgewidth=2.5,
                markeredgecolor=get_category_color(category), label=category
            ))

        legend = ax.legend(
            handles=legend_elements,
            loc='upper left',
            bbox_to_anchor=(1.0, 1.0),
            fontsize=LEGEND_FONT_SIZE,
            frameon=True,
            fancybox=False,
            edgecolor='#D0D0D0',
            framealpha=0.92
        )
        legend.get_frame().set_linewidth(0.6)

    plt.tight_layout()

    return fig


# =============================================================================
# OUTPUT FUNCTIONS
# =============================================================================

def save_digraph(fig, filename='ism_diagraph.png', output_dir=None, dpi=None):
    """
    Save digraph to PNG file and close the figure.

    Returns:
    --------
    Path
        Path to saved file
    """
    if dpi is None:
        dpi = FIGURE_DPI

    file_path = prepare_output_dir(output_dir) / filename

    try:
        fig.savefig(
            file_path,
            dpi=dpi,
            bbox_inches='tight',
            facecolor=FIGURE_BG_COLOR,
            edgecolor='none'
        )
    finally:
        plt.close(fig)
    print(f"Digraph saved to: {file_path}")

    return file_path


def create_edge_list_dataframe(edges, factors, factor_levels):
    """Create DataFrame with edge list information."""
    data = []
    for from_idx, to_idx in edges:
        from_level = factor_levels[from_idx]
        to_level = factor_levels[to_idx]

        if from_level > to_level:
            rel_type = "Influence (Cause→Effect)"
        elif from_level < to_level:
            rel_type = "Feedback"
        else:
            rel_type = "Same Level"

        data.append({
            'From_Code': factors[from_idx]['name'],
            'From_Name': get_factor_label(factors[from_idx]),
            'From_Level': from_level,
            'To_Code': factors[to_idx]['name'],
            'To_Name': get_factor_label(factors[to_idx]),
            'To_Level': to_level,
            'Relationship_Type': rel_type
        })

    return pd.DataFrame(data, columns=['From_Code', 'From_Name', 'From_Level', 'To_Code',
                                       'To_Name', 'To_Level', 'Relationship_Type'])


def create_canonical_dataframe(canonical, factors):
    """Canonical matrix as a labelled 0/1 table."""
    labels = [f['name'] for f in factors]
    return pd.DataFrame(np.asarray(canonical, dtype=int), index=labels, columns=labels)


def save_edge_list(edge_df, canonical_df=None, output_dir=None):
    """
    Save edge list (and canonical matrix) to Excel file.

    Output file:
    - ism_edge_list.xlsx

    Returns:
    --------
    Path
        Path to saved file
    """
    sheets = [('Edge_List', edge_df, False)]
    if canonical_df is not None:
        sheets.append(('Canonical_Matrix', canonical_df, True))

    file_path = write_workbook(prepare_output_dir(output_dir) / "ism_edge_list.xlsx", sheets)
    print(f"Edge list saved to: {file_path}")
    return file_path


def print_digraph_summary(edges, levels, factor_levels, factors, edge_source):
    """Print summary of digraph construction."""
    edge_categories = filter_edges_by_levels(edges, factor_levels)

    print("-" * 70)
    print("ISM DIGRAPH CONSTRUCTION SUMMARY")
    print("-" * 70)
    print(f"Number of Factors: {len(factors)}")
    print(f"Number of Levels: {len(levels)}")
    print(f"Edge Source: {edge_source.upper()}")
    print(f"Total Edges: {len(edges)}")
    print()

    print("EDGE CATEGORIES:")
    print(f"  Influence (Cause→Effect): {len(edge_categories['upward'])}")
    print(f"  Feedback: {len(edge_categories['downward'])}")
    print(f"  Between Levels: {len(edge_categories['inter_level'])}")
    print(f"  Same Level: {len(edge_categories['intra_level'])}")
    print()

    print("NODES BY LEVEL:")
    for level in levels:
        codes = [factors[i]['name'] for i in level['elements']]
        print(f"  Level {int_to_roman(level['level'])}: {', '.join(codes)}")
    print()

    print("-" * 70)


# =============================================================================
# MAIN FUNCTION
# =============================================================================

def create_ism_digraph(irm=None, frm=None, levels=None, factor_levels=None, factors=None,
                       frm_results=None, lp_results=None, edge_source=None,
                       save=True, output_dir=None):
    """
    Main function to create the canonical matrix and ISM digraph.

    Parameters:
    -----------
    irm : numpy.ndarray, optional
        Initial Reachability Matrix (before transitivity).
    frm : numpy.ndarray, optional
        Final Reachability Matrix.
    levels : list, optional
        Level records {'level': k, 'elements': [indices]}.
    factor_levels : dict, optional
        Factor index -> level.
    factors : list, optional
        Factor dictionaries.
    frm_results : dict, optional
        Results from Module 3.
    lp_results : dict, optional
        Results from Module 4.
    edge_source : str, optional
        'irm' or 'canonical'. If None, uses EDGE_SOURCE.
    save : bool, optional
        Whether to save outputs.
    output_dir : str or Path, optional
        Output directory.

    Returns:
    --------
    dict
        Dictionary containing:
        - 'canonical_matrix': Reduced adjacency matrix
        - 'edges': Drawn edges
        - 'positions': Node positions
        - 'fig': Matplotlib figure (None when there are no factors)
        - 'interrelationship_fig': Circular IRM graph (None when there are no factors)
        - 'edge_df', 'canonical_df': DataFrames for export
        - 'output_files': Paths to saved files
    """
    print("\n" + "=" * 70)
    print("MODULE 5: ISM DIGRAPH CONSTRUCTION")
    print("=" * 70 + "\n")

    if edge_source is None:
        edge_source = EDGE_SOURCE
    if edge_source not in ('irm', 'canonical'):
        raise ValueError(f"edge_source must be 'irm' or 'canonical', got {edge_source!r}")

    # Step 1: Get required data
    if irm is None or frm is None:
        if frm_results is None:
            print("Running Module 3 to get IRM and FRM...")
            frm_results = create_reachability_matrix(save=False)
        irm = frm_results['irm']
        frm = frm_results['frm']
        if factors is None:
            factors = frm_results['factors']

    if factors is None:
        if lp_results is None:
            raise ValueError("factors must be provided together with irm and frm")
        factors = lp_results['factors']

    if levels is None or factor_levels is None:
        if lp_results is None:
            print("Running Module 4 to get level partitioning...")
            lp_results = perform_level_partitioning(frm=frm, factors=factors, save=False)
        levels = lp_results['levels']
        factor_levels = lp_results['factor_levels']
        factors = lp_results['factors']

    n = len(factors)
    print(f"Number of factors: {n}")
    print(f"Number of levels: {len(levels)}\n")

    # Step 2: Canonical matrix
    print("Deriving canonical matrix from FRM...")
    canonical = create_canonical_matrix(frm)
    print(f"  Canonical edges: {int(np.sum(canonical))} "
          f"(FRM off-diagonal 1s: {int(np.sum(frm)) - int(np.trace(np.asarray(frm)))})\n")

    # Step 3: Extract edges
    print(f"Extracting edges from {edge_source.upper()}...")
    edges = extract_edges(irm if edge_source == 'irm' else canonical)
    print(f"  Found {len(edges)} edges.\n")

    # Step 4: Calculate positions
    print("Calculating hierarchical layout positions...")
    positions = calculate_hierarchical_positions(levels)
    print("  Positions calculated.\n")

    # Step 5: Print summary
    print_digraph_summary(edges, levels, factor_levels, factors, edge_source)

    # Step 6: Create visualization
    fig = None
    if positions:
        print("\nCreating digraph visualization...")
        fig = create_digraph(edges, positions, levels, factor_levels, factors)
        print("  Visualization created.\n")
    else:
        print("\nNo factors to draw. Skipping visualization.\n")

    # Step 7: Interrelationship graph
    interrelationship_fig = None
    if n > 0:
        print("Creating interrelationship graph (circular layout, IRM edges)...")
        interrelationship_fig = create_interrelationship_graph(irm, factors)
        print("  Interrelationship graph created.\n")

    # Step 8: Create DataFrames
    edge_df = create_edge_list_dataframe(edges, factors, factor_levels)
    canonical_df = create_canonical_dataframe(canonical, factors)

    # Step 9: Save outputs
    output_files = []
    if save:
        print("Saving outputs...")
        if fig is not None:
            output_files.append(save_digraph(fig, 'ism_diagraph.png', output_dir))
        if interrelationship_fig is not None:
            output_files.append(save_digraph(interrelationship_fig, 'ism_interrelationship.png',
                                             output_dir))
        output_files.append(save_edge_list(edge_df, canonical_df, output_dir))

    results = {
        'canonical_matrix': canonical,
        'edges': edges,
        'edge_source': edge_source,
        'positions': positions,
        'levels': levels,
        'factor_levels': factor_levels,
        'fig': fig,
        'interrelationship_fig': interrelationship_fig,
        'edge_df': edge_df,
        'canonical_df': canonical_df,
        'factors': factors,
        'irm': irm,
        'frm': frm,
        'n': n,
        'output_files': output_files
    }

    print("\n" + "=" * 70)
    print("MODULE 5 COMPLETED SUCCESSFULLY")
    print("=" * 70 + "\n")

    return results


# =============================================================================
# STANDALONE EXECUTION
# =============================================================================

if __name__ == "__main__":
    print("Running Module 5 in standalone mode...")
    results = create_ism_digraph()

    print("\n" + "=" * 70)
    print("EDGE LIST")
    print("=" * 70)
    print(results['edge_df'].to_string(index=False))
