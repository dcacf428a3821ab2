# SPDX-License-Identifier: PROPRIETARY
# File: m2_ism_irm.py
# Purpose: Module 2 - SSIM encoding into the ISM Initial Reachability Matrix

"""
ISM Initial Reachability Matrix Construction

This module converts the Structural Self-Interaction Matrix (SSIM) of
qualitative V/A/X/O judgments into the binary Initial Reachability Matrix (IRM).

Mathematical Procedures:
------------------------

1. SSIM SYMBOLS (upper triangle only, row i < column j):
   V : i influences j          (i → j)
   A : j influences i          (j → i)
   X : mutual influence        (i ↔ j)
   O : no relationship

2. DEFAULT RESOLUTION:
   s_ij = SSIM[i][j] if entered, else O

3. BINARY CONVERSION (for each pair i < j):
   k_ij = 1  if s_ij in {V, X}, else 0
   k_ji = 1  if s_ij in {A, X}, else 0

4. REFLEXIVITY:
   k_ii = 1  for all i = 1 to n

Lower-triangle and diagonal SSIM entries are ignored: the lower triangle is
always derived from the upper-triangle entry of the same pair.
"""

import numpy as np
import pandas as pd

# Import from previous modules
from m1_data_processing import (
    SSIM_DEFAULT,
    SSIM_SYMBOLS,
    get_factor_label,
    prepare_output_dir,
    process_data,
    validate_analysis_input,
    write_workbook
)

# Direction flags per symbol: (row → column, column → row)
RELATION_FLAGS = {
    'V': (1, 0),
    'A': (0, 1),
    'X': (1, 1),
    'O': (0, 0),
}

# =============================================================================
# SSIM ENCODING
# =============================================================================

def lookup_judgment(ssim, row_id, col_id):
    """
    Resolve the SSIM symbol for a cell, defaulting to O.

    Parameters:
    -----------
    ssim : dict
        Nested dictionary: row factor id -> column factor id -> symbol
    row_id, col_id : str
        Factor identifiers

    Returns:
    --------
    str
        The entered symbol, or SSIM_DEFAULT when the row, the column, or the
        value is absent
    """
    row = ssim.get(row_id) or {}
    symbol = row.get(col_id)
    if symbol is None:
        return SSIM_DEFAULT
    return symbol


def encode_judgment(symbol):
    """
    Convert an SSIM symbol into its (forward, backward) direction flags.

    Unrecognized symbols encode as no relationship.
    """
    return RELATION_FLAGS.get(symbol, RELATION_FLAGS[SSIM_DEFAULT])


def encode_ssim(n, factor_ids, ssim):
    """
    Create the Initial Reachability Matrix (IRM) from SSIM judgments.

    Each unordered pair {i, j} is resolved by exactly one lookup of the
    upper-triangle cell (factor_ids[i], factor_ids[j]) with i < j, so the two
    cells k_ij and k_ji always agree with a single symbol.

    Parameters:
    -----------
    n : int
        Number of factors
    factor_ids : list
        Ordered factor identifiers (index i <-> factor_ids[i])
    ssim : dict
        Nested dictionary: row factor id -> column factor id -> symbol

    Returns:
    --------
    numpy.ndarray
        Initial Reachability Matrix (n × n, values {0, 1})
    """
    if n != len(factor_ids):
        raise ValueError(f"Factor count {n} does not match {len(factor_ids)} factor ids")

    irm = np.zeros((n, n), dtype=int)

    for i in range(n):
        irm[i, i] = 1
        for j in range(i + 1, n):
            symbol = lookup_judgment(ssim, factor_ids[i], factor_ids[j])
            forward, backward = encode_judgment(symbol)
            irm[i, j] = forward
            irm[j, i] = backward

    return irm


def build_ssim_grid(n, factor_ids, ssim):
    """
    Build the resolved SSIM grid for display.

    Upper triangle holds the resolved symbol, the diagonal and the lower
    triangle are left blank.

    Returns:
    --------
    numpy.ndarray
        n × n object array of strings
    """
    grid = np.full((n, n), '', dtype=object)

    for i in range(n):
        for j in range(i + 1, n):
            grid[i, j] = lookup_judgment(ssim, factor_ids[i], factor_ids[j])

    return grid


def count_judgments(n, factor_ids, ssim):
    """Count resolved upper-triangle symbols (V, A, X, O)."""
    counts = {symbol: 0 for symbol in SSIM_SYMBOLS}

    for i in range(n):
        for j in range(i + 1, n):
            symbol = lookup_judgment(ssim, factor_ids[i], factor_ids[j])
            if symbol in counts:
                counts[symbol] += 1

    return counts


# =============================================================================
# DATAFRAME CREATION
# =============================================================================

def create_ssim_dataframe(ssim_grid, factors):
    """
    Create DataFrame for the SSIM export.

    Format:
    - Rows: "name: description" labels
    - Columns: factor names
    """
    row_labels = [get_factor_label(f) for f in factors]
    col_labels = [f['name'] for f in factors]

    return pd.DataFrame(ssim_grid, index=row_labels, columns=col_labels)


def create_irm_dataframe(irm, factors):
    """
    Create DataFrame for Initial Reachability Matrix export.

    Format:
    - Rows: "name: description" labels
    - Columns: factor names

    Parameters:
    -----------
    irm : numpy.ndarray
        Initial Reachability Matrix
    factors : list
        Factor dictionaries

    Returns:
    --------
    pandas.DataFrame
        IRM with labelled rows and columns
    """
    row_labels = [get_factor_label(f) for f in factors]
    col_labels = [f['name'] for f in factors]

    return pd.DataFrame(irm, index=row_labels, columns=col_labels)


# =============================================================================
# OUTPUT FUNCTIONS
# =============================================================================

def save_initial_reachability_matrix(ssim_df, irm_df, judgment_counts, output_dir=None):
    """
    Save the SSIM and Initial Reachability Matrix to Excel files.

    Output files:
    1. ism_ssim.xlsx: Resolved SSIM (upper triangle)
    2. ism_irm.xlsx: Initial Reachability Matrix

    Returns:
    --------
    tuple
        Paths to saved files
    """
    output_path = prepare_output_dir(output_dir)

    info_df = pd.DataFrame({
        'Parameter': [
            'V (i → j)',
            'A (j → i)',
            'X (i ↔ j)',
            'O (none)',
            'Diagonal Rule',
            'Missing Entries'
        ],
        'Value': [
            judgment_counts.get('V', 0),
            judgment_counts.get('A', 0),
            judgment_counts.get('X', 0),
            judgment_counts.get('O', 0),
            "k_ii = 1 for all i (reflexivity)",
            f"Treated as '{SSIM_DEFAULT}'"
        ]
    })

    ssim_file = write_workbook(output_path / "ism_ssim.xlsx", [
        ('SSIM', ssim_df, True),
        ('Info', info_df, False),
    ])
    print(f"SSIM saved to: {ssim_file}")

    irm_file = write_workbook(output_path / "ism_irm.xlsx", [
        ('Initial_Reachability_Matrix', irm_df, True),
        ('Info', info_df, False),
    ])
    print(f"Initial Reachability Matrix saved to: {irm_file}")

    return ssim_file, irm_file


def print_irm_summary(irm, judgment_counts, factors):
    """Print summary of SSIM encoding."""
    n = len(factors)

    print("-" * 70)
    print("ISM INITIAL REACHABILITY MATRIX SUMMARY")
    print("-" * 70)
    print(f"Number of Factors: {n}")
    print()

    print("SSIM JUDGMENTS (upper triangle):")
    for symbol in SSIM_SYMBOLS:
        print(f"  {symbol}: {judgment_counts.get(symbol, 0)}")
    print()

    print("ENCODING RULES:")
    print("  V: k_ij = 1, k_ji = 0")
    print("  A: k_ij = 0, k_ji = 1")
    print("  X: k_ij = 1, k_ji = 1")
    print("  O: k_ij = 0, k_ji = 0")
    print("  k_ii = 1 for all i (reflexivity)")
    print()

    irm_ones = int(np.sum(irm))
    print("INITIAL REACHABILITY MATRIX (IRM):")
    print(f"  Total 1s: {irm_ones} out of {n*n} elements")
    if n > 0:
        print(f"  Density: {irm_ones / (n*n) * 100:.1f}%")
    print()

    print("-" * 70)


# =============================================================================
# MAIN FUNCTION
# =============================================================================

def create_initial_reachability_matrix(factors=None, ssim=None, data_results=None,
                                       save=True, output_dir=None):
    """
    Main function to create the Initial Reachability Matrix.

    Parameters:
    -----------
    factors : list, optional
        Factor dictionaries. If None, taken from data_results or Module 1.
    ssim : dict, optional
        SSIM judgments.
    data_results : dict, optional
        Results from Module 1 (alternative to providing factors and ssim).
    save : bool, optional
        Whether to save outputs to Excel files.
    output_dir : str or Path, optional
        Output directory.

    Returns:
    --------
    dict
        Dictionary containing:
        - 'irm': Initial Reachability Matrix (numpy array)
        - 'ssim_grid': Resolved SSIM grid
        - 'judgment_counts': Count of each symbol
        - 'ssim_df': SSIM DataFrame for export
        - 'irm_df': IRM DataFrame for export
        - 'factors', 'factor_ids', 'ssim', 'n'
        - 'output_files': Paths to saved files (if save=True)

    Raises:
    -------
    ValueError
        If the factor ids or SSIM symbols are invalid.
    """
    print("\n" + "=" * 70)
    print("MODULE 2: ISM INITIAL REACHABILITY MATRIX")
    print("=" * 70 + "\n")

    # Step 1: Get factors and SSIM
    if factors is None or ssim is None:
        if data_results is None:
            print("Running Module 1 to load input data...")
            data_results = process_data(factors=factors, ssim=ssim)
        else:
            print("Using input data from provided Module 1 results.\n")
        factors = data_results['factors']
        ssim = data_results['ssim']

    factor_ids = [f['id'] for f in factors]
    n = len(factor_ids)
    validate_analysis_input(n, factor_ids, ssim)

    print(f"Number of factors: {n}")
    print(f"Factors: {[f['name'] for f in factors]}\n")

    # Step 2: Encode SSIM
    print("Encoding SSIM into Initial Reachability Matrix (IRM)...")
    print(f"  Missing judgments resolve to '{SSIM_DEFAULT}'")
    print("  Setting diagonal to 1 (reflexivity)")
    irm = encode_ssim(n, factor_ids, ssim)
    ssim_grid = build_ssim_grid(n, factor_ids, ssim)
    judgment_counts = count_judgments(n, factor_ids, ssim)
    print(f"  IRM created: {n}×{n} binary matrix\n")

    # Step 3: Create DataFrames
    print("Creating DataFrames for export...")
    ssim_df = create_ssim_dataframe(ssim_grid, factors)
    irm_df = create_irm_dataframe(irm, factors)
    print("  DataFrames created.\n")

    # Step 4: Print summary
    print_irm_summary(irm, judgment_counts, factors)

    # Step 5: Save outputs
    output_files = None
    if save:
        print("\nSaving outputs...")
        output_files = save_initial_reachability_matrix(ssim_df, irm_df, judgment_counts, output_dir)

    results = {
        'irm': irm,
        'ssim_grid': ssim_grid,
        'judgment_counts': judgment_counts,
        'ssim_df': ssim_df,
        'irm_df': irm_df,
        'factors': factors,
        'factor_ids': factor_ids,
        'ssim': ssim,
        'n': n,
        'output_files': output_files
    }

    print("\n" + "=" * 70)
    print("MODULE 2 COMPLETED SUCCESSFULLY")
    print("=" * 70 + "\n")

    return results


# =============================================================================
# STANDALONE EXECUTION
# =============================================================================

if __name__ == "__main__":
    print("Running Module 2 in standalone mode...")
    results = create_initial_reachability_matrix()

    print("\n" + "=" * 70)
    print("STRUCTURAL SELF-INTERACTION MATRIX (SSIM)")
    print("=" * 70)
    print(results['ssim_df'].to_string())

    print("\n" + "=" * 70)
    print("INITIAL REACHABILITY MATRIX (IRM)")
    print("=" * 70)
    print(results['irm_df'].to_string())
