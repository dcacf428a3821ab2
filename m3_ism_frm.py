# SPDX-License-Identifier: PROPRIETARY
# File: m3_ism_frm.py
# Purpose: Module 3 - ISM Final Reachability Matrix (transitive closure) and power calculation

"""
ISM Final Reachability Matrix Construction

This module applies transitivity to the Initial Reachability Matrix (IRM) to
create the Final Reachability Matrix (FRM), and calculates driving and
dependence power.

Mathematical Procedures:
------------------------

1. TRANSITIVITY RULE:
   If k_ik = 1 AND k_kj = 1, then k_ij must = 1

2. WARSHALL CLOSURE (single pass, in place):
   FOR k from 1 to n:
       FOR i from 1 to n:
           FOR j from 1 to n:
               r_ij = r_ij OR (r_ik AND r_kj)

   Each intermediate k is visited once, using the matrix as already
   updated by earlier k. One pass yields the full closure in O(n³).

3. TRANSITIVITY ENTRIES:
   Entries with r_ij = 1 in FRM but k_ij = 0 in IRM (marked "1*")

4. DRIVING POWER:
   DP(i) = Σ r_ij for j = 1 to n  (sum of row i)

5. DEPENDENCE POWER:
   DEP(i) = Σ r_ji for j = 1 to n  (sum of column i)
"""

import numpy as np
import pandas as pd

# Import from previous modules
from m1_data_processing import (
    get_factor_label,
    prepare_output_dir,
    write_workbook
)
from m2_ism_irm import create_initial_reachability_matrix

# =============================================================================
# TRANSITIVE CLOSURE
# =============================================================================

def compute_final_reachability(irm):
    """
    Compute the Final Reachability Matrix as the transitive closure of IRM.

    Uses Warshall's order: for each intermediate k, every row i that reaches
    k absorbs row k. This is the triple loop
    r_ij |= r_ik & r_kj over the in-place updated matrix, with the inner j
    loop done as one row operation.

    Parameters:
    -----------
    irm : numpy.ndarray or list
        Initial Reachability Matrix (n × n, values {0, 1})

    Returns:
    --------
    numpy.ndarray
        Final Reachability Matrix (new array; the input is not modified)
    """
    frm = np.array(irm, dtype=int, copy=True)
    n = len(frm)

    for k in range(n):
        for i in range(n):
            if frm[i, k]:
                frm[i, :] = np.logical_or(frm[i, :], frm[k, :])

    return frm


def find_transitivity_entries(irm, frm):
    """
    List the entries added by transitivity.

    Parameters:
    -----------
    irm : numpy.ndarray
        Initial Reachability Matrix
    frm : numpy.ndarray
        Final Reachability Matrix

    Returns:
    --------
    list
        (row, col) tuples, 0-based, in row-major order
    """
    irm = np.asarray(irm)
    frm = np.asarray(frm)

    changed = np.where((frm == 1) & (irm == 0))
    return [(int(i), int(j)) for i, j in zip(changed[0], changed[1])]


def is_transitive(matrix):
    """Check whether a binary matrix already satisfies the transitivity rule."""
    matrix = np.asarray(matrix, dtype=int)
    return np.array_equal(compute_final_reachability(matrix), matrix)


# =============================================================================
# POWER CALCULATIONS
# =============================================================================

def calculate_driving_power(reachability_matrix):
    """
    Calculate Driving Power for each factor.

    Formula:
    --------
    DP(i) = Σ r_ij for j = 1 to n

    The number of factors that factor i can reach (including itself).
    """
    return np.sum(np.asarray(reachability_matrix, dtype=int), axis=1)


def calculate_dependence_power(reachability_matrix):
    """
    Calculate Dependence Power for each factor.

    Formula:
    --------
    DEP(i) = Σ r_ji for j = 1 to n

    The number of factors that can reach factor i (including itself).
    """
    return np.sum(np.asarray(reachability_matrix, dtype=int), axis=0)


# =============================================================================
# DATAFRAME CREATION
# =============================================================================

def create_frm_dataframe(frm, driving_power, dependence_power, factors,
                         transitivity_entries=None):
    """
    Create DataFrame for Final Reachability Matrix export.

    Format:
    - Rows: "name: description" labels
    - Columns: factor names + Driving Power
    - Last row shows Dependence Power for each factor
    - Transitivity entries marked with "1*"
    - Corner cell shows total (sum of driving power = sum of dependence power)

    Parameters:
    -----------
    frm : numpy.ndarray
        Final Reachability Matrix
    driving_power : numpy.ndarray
        Driving power for each factor
    dependence_power : numpy.ndarray
        Dependence power for each factor
    factors : list
        Factor dictionaries
    transitivity_entries : list, optional
        (row, col) tuples (0-based) for entries added by transitivity

    Returns:
    --------
    pandas.DataFrame
        FRM with powers and transitivity marked with "1*"
    """
    if transitivity_entries is None:
        transitivity_entries = []

    n = len(factors)
    row_labels = [get_factor_label(f) for f in factors]
    col_labels = [f['name'] for f in factors] + ['Driving Power']

    transitivity_set = set(transitivity_entries)

    rows = []
    for i in range(n):
        row = []
        for j in range(n):
            if frm[i, j] == 1:
                row.append("1*" if (i, j) in transitivity_set else "1")
            else:
                row.append("0")
        row.append(str(int(driving_power[i])))
        rows.append(row)

    df = pd.DataFrame(rows, index=row_labels, columns=col_labels)

    dep_row = [str(int(dep)) for dep in dependence_power] + [str(int(np.sum(driving_power)))]
    df.loc['Dependence Power'] = dep_row

    return df


def create_transitivity_dataframe(transitivity_entries, factors):
    """
    Create DataFrame showing transitivity entries added.

    Parameters:
    -----------
    transitivity_entries : list
        (row, col) tuples (0-based) for entries changed to 1
    factors : list
        Factor dictionaries

    Returns:
    --------
    pandas.DataFrame
        DataFrame with transitivity entries
    """
    if len(transitivity_entries) == 0:
        return pd.DataFrame({'Message': ['No transitivity entries needed']})

    data = []
    for row_idx, col_idx in transitivity_entries:
        factor_from = factors[row_idx]
        factor_to = factors[col_idx]

        data.append({
            'Row_Index': row_idx + 1,
            'Col_Index': col_idx + 1,
            'From_Factor': get_factor_label(factor_from),
            'To_Factor': get_factor_label(factor_to),
            'Entry': f"{factor_from['name']}→{factor_to['name']}"
        })

    return pd.DataFrame(data)


def create_power_summary_dataframe(driving_power, dependence_power, factors):
    """Create summary DataFrame with driving and dependence power."""
    data = []
    for i, factor in enumerate(factors):
        data.append({
            'Factor_Code': factor['name'],
            'Factor_Name': factor['description'] or factor['name'],
            'Driving_Power': int(driving_power[i]),
            'Dependence_Power': int(dependence_power[i])
        })

    return pd.DataFrame(data, columns=['Factor_Code', 'Factor_Name', 'Driving_Power', 'Dependence_Power'])


# =============================================================================
# OUTPUT FUNCTIONS
# =============================================================================

def save_final_reachability_matrix(frm_df, transitivity_df, power_df, output_dir=None):
    """
    Save the Final Reachability Matrix to an Excel file.

    Output file:
    - ism_frm.xlsx: Final Reachability Matrix (with transitivity marks and powers)

    Returns:
    --------
    Path
        Path to saved file
    """
    output_path = prepare_output_dir(output_dir)

    info_df = pd.DataFrame({
        'Parameter': [
            'Transitivity Rule',
            'Closure Algorithm',
            'Key: 1',
            'Key: 1*',
            'Key: 0'
        ],
        'Value': [
            "If r_ik = 1 AND r_kj = 1, then r_ij = 1",
            "Warshall (single pass over intermediates k)",
            "Direct relationship",
            "Transitive relationship",
            "No relationship"
        ]
    })

    frm_file = write_workbook(output_path / "ism_frm.xlsx", [
        ('Final_Reachability_Matrix', frm_df, True),
        ('Power_Summary', power_df, False),
        ('Transitivity_Entries', transitivity_df, False),
        ('Info', info_df, False),
    ])
    print(f"Final Reachability Matrix saved to: {frm_file}")

    return frm_file


def print_frm_summary(irm, frm, driving_power, dependence_power, transitivity_entries, factors):
    """
    Print summary of reachability matrix construction.

    Parameters:
    -----------
    irm : numpy.ndarray
        Initial Reachability Matrix
    frm : numpy.ndarray
        Final Reachability Matrix
    driving_power : numpy.ndarray
        Driving power values
    dependence_power : numpy.ndarray
        Dependence power values
    transitivity_entries : list
        (row, col) tuples added by transitivity
    factors : list
        Factor dictionaries
    """
    n = len(factors)

    print("-" * 70)
    print("ISM FINAL REACHABILITY MATRIX SUMMARY")
    print("-" * 70)
    print(f"Number of Factors: {n}")
    print()

    print("TRANSITIVITY CHECK:")
    print("  Rule: r_ij = r_ij OR (r_ik AND r_kj), k = 1..n")
    print(f"  IRM already transitive: {'Yes' if is_transitive(irm) else 'No'}")
    print(f"  Entries added by transitivity: {len(transitivity_entries)}")
    if len(transitivity_entries) > 0:
        print("  Transitivity entries (marked with *):")
        for row_idx, col_idx in transitivity_entries[:10]:
            print(f"    {factors[row_idx]['name']}→{factors[col_idx]['name']}")
        if len(transitivity_entries) > 10:
            print(f"    ... and {len(transitivity_entries) - 10} more")
    print(f"  FRM transitive: {'Yes' if is_transitive(frm) else 'No'}")
    print()

    irm_ones = int(np.sum(irm))
    frm_ones = int(np.sum(frm))
    print("FINAL REACHABILITY MATRIX (FRM):")
    print(f"  Total 1s: {frm_ones} out of {n*n} elements (IRM: {irm_ones})")
    if n > 0:
        print(f"  Density: {frm_ones / (n*n) * 100:.1f}%")
    print()

    print("DRIVING AND DEPENDENCE POWER:")
    print(f"  {'Factor':<8} {'Driving Power':<15} {'Dependence Power':<18}")
    print(f"  {'-'*8} {'-'*15} {'-'*18}")
    for i, factor in enumerate(factors):
        print(f"  {factor['name']:<8} {int(driving_power[i]):<15} {int(dependence_power[i]):<18}")
    print()

    print(f"  Total Driving Power: {int(np.sum(driving_power))}")
    print(f"  Total Dependence Power: {int(np.sum(dependence_power))}")
    print(f"  (Both should equal total 1s in FRM: {frm_ones})")
    print()

    print("-" * 70)


# =============================================================================
# MAIN FUNCTION
# =============================================================================

def create_reachability_matrix(irm=None, factors=None, irm_results=None,
                               save=True, output_dir=None):
    """
    Main function to create the Final Reachability Matrix.

    Parameters:
    -----------
    irm : numpy.ndarray, optional
        Initial Reachability Matrix. If None, taken from irm_results or Module 2.
    factors : list, optional
        Factor dictionaries (required together with irm).
    irm_results : dict, optional
        Results from Module 2 (alternative to providing irm directly).
    save : bool, optional
        Whether to save outputs to Excel files.
    output_dir : str or Path, optional
        Output directory.

    Returns:
    --------
    dict
        Dictionary containing:
        - 'irm': Initial Reachability Matrix (numpy array)
        - 'frm': Final Reachability Matrix (numpy array)
        - 'driving_power': Driving power array
        - 'dependence_power': Dependence power array
        - 'transitivity_entries': List of (i, j) pairs added by closure
        - 'frm_df', 'power_df', 'transitivity_df': DataFrames for export
        - 'factors', 'n'
        - 'output_files': Paths to saved files (if save=True)
    """
    print("\n" + "=" * 70)
    print("MODULE 3: ISM FINAL REACHABILITY MATRIX")
    print("=" * 70 + "\n")

    # Step 1: Get IRM
    if irm is None or factors is None:
        if irm_results is not None:
            print("Using IRM from provided Module 2 results.\n")
        else:
            print("Running Module 2 to get Initial Reachability Matrix...")
            irm_results = create_initial_reachability_matrix(save=False)
        irm = irm_results['irm']
        factors = irm_results['factors']

    irm = np.asarray(irm, dtype=int)
    n = len(factors)
    print(f"Number of factors: {n}\n")

    # Step 2: Apply transitivity
    print("Applying transitivity (Warshall closure)...")
    print("  Rule: r_ij = r_ij OR (r_ik AND r_kj)")
    frm = compute_final_reachability(irm)
    transitivity_entries = find_transitivity_entries(irm, frm)
    print(f"  Transitivity entries added: {len(transitivity_entries)}\n")

    # Step 3: Calculate driving and dependence power
    print("Calculating Driving and Dependence Power...")
    print("  DP(i) = Σ r_ij (sum of row i)")
    print("  DEP(i) = Σ r_ji (sum of column i)")
    driving_power = calculate_driving_power(frm)
    dependence_power = calculate_dependence_power(frm)
    print("  Powers calculated.\n")

    # Step 4: Create DataFrames
    print("Creating DataFrames for export...")
    frm_df = create_frm_dataframe(frm, driving_power, dependence_power, factors,
                                  transitivity_entries=transitivity_entries)
    transitivity_df = create_transitivity_dataframe(transitivity_entries, factors)
    power_df = create_power_summary_dataframe(driving_power, dependence_power, factors)
    print("  DataFrames created.\n")

    # Step 5: Print summary
    print_frm_summary(irm, frm, driving_power, dependence_power, transitivity_entries, factors)

    # Step 6: Save outputs
    output_files = None
    if save:
        print("\nSaving outputs...")
        output_files = [save_final_reachability_matrix(frm_df, transitivity_df, power_df, output_dir)]

    results = {
        'irm': irm,
        'frm': frm,
        'driving_power': driving_power,
        'dependence_power': dependence_power,
        'transitivity_entries': transitivity_entries,
        'frm_df': frm_df,
        'power_df': power_df,
        'transitivity_df': transitivity_df,
        'factors': factors,
        'n': n,
        'output_files': output_files
    }

    print("\n" + "=" * 70)
    print("MODULE 3 COMPLETED SUCCESSFULLY")
    print("=" * 70 + "\n")

    return results


# =============================================================================
# STANDALONE EXECUTION
# =============================================================================

if __name__ == "__main__":
    print("Running Module 3 in standalone mode...")
    results = create_reachability_matrix()

    print("\n" + "=" * 70)
    print("FINAL REACHABILITY MATRIX (FRM) with Powers")
    print("=" * 70)
    print(results['frm_df'].to_string())
