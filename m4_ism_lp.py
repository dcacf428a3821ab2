# SPDX-License-Identifier: PROPRIETARY
# File: m4_ism_lp.py
# Purpose: Module 4 - ISM Level Partitioning of the Final Reachability Matrix

"""
ISM Level Partitioning

Strips the Final Reachability Matrix (FRM) into hierarchical levels, one
stratum per round.

Set Definitions (restricted to the factors still unassigned):
--------------------------------------------------------------

   R(i) = {j : r_ij = 1}        reachability set, i itself included
   A(i) = {j : r_ji = 1}        antecedent set, i itself included
   C(i) = R(i) ∩ A(i)           intersection set

Round Rule:
-----------

   i belongs to the current level  IF  R(i) = C(i)

   i.e. every factor i still reaches also reaches i. Those factors form
   the level, are removed, and the next round starts with level + 1.

   Level 1 is the top of the hierarchy (outcomes); the last level holds
   the root causes. On a transitive FRM every round assigns at least one
   factor. A round that assigns none stops with RuntimeError.
"""

import numpy as np
import pandas as pd

# Import from previous modules
from m1_data_processing import (
    get_factor_label,
    prepare_output_dir,
    write_workbook
)
from m3_ism_frm import create_reachability_matrix

# Column layout shared by the per-round and comprehensive tables
SET_TABLE_COLUMNS = ['Factor', 'Reachability_Set_R(i)', 'Antecedent_Set_A(i)',
                     'Intersection_C(i)', 'Level']

# =============================================================================
# REACHABILITY SETS
# =============================================================================

def get_reachability_set(reachability_matrix, factor_index):
    """
    Factors reachable from factor_index (row of the matrix).

    Parameters:
    -----------
    reachability_matrix : numpy.ndarray
        Final Reachability Matrix
    factor_index : int
        0-based factor position

    Returns:
    --------
    set
        0-based indices j with r_ij = 1
    """
    row = np.asarray(reachability_matrix)[factor_index, :]
    return {int(j) for j in np.flatnonzero(row == 1)}


def get_antecedent_set(reachability_matrix, factor_index):
    """Factors that reach factor_index (column of the matrix), as 0-based indices."""
    column = np.asarray(reachability_matrix)[:, factor_index]
    return {int(j) for j in np.flatnonzero(column == 1)}


def get_intersection_set(reachability_set, antecedent_set):
    """
    Get the intersection set C(i) = R(i) ∩ A(i).

    Factor i is assigned to the current level when C(i) equals R(i).
    """
    return reachability_set & antecedent_set


def restricted_sets(reachability_matrix, factor_index, remaining):
    """R(i), A(i) and C(i) of one factor, limited to the unassigned factors."""
    reachability = get_reachability_set(reachability_matrix, factor_index) & remaining
    antecedent = get_antecedent_set(reachability_matrix, factor_index) & remaining
    return reachability, antecedent, get_intersection_set(reachability, antecedent)


# =============================================================================
# PARTITIONING
# =============================================================================

def partition_levels(reachability_matrix):
    """
    Assign every factor of a transitive reachability matrix to a level.

    Each round evaluates the unassigned factors in ascending index order and
    takes those with R(i) = C(i) as the next level.

    Parameters:
    -----------
    reachability_matrix : numpy.ndarray
        Final Reachability Matrix

    Returns:
    --------
    dict
        - 'levels': [{'level': k, 'elements': [indices ascending]}], level 1 first
        - 'factor_levels': factor index -> level
        - 'iterations': one record per round with keys 'level',
          'candidates', 'rows' (per-factor sets) and 'assigned'
        - 'max_level': number of levels (0 for an empty matrix)

    Raises:
    -------
    RuntimeError
        If a round assigns no factor while factors remain unassigned.
    """
    reachability_matrix = np.asarray(reachability_matrix, dtype=int)
    remaining = set(range(len(reachability_matrix)))

    levels = []
    factor_levels = {}
    iterations = []

    while remaining:
        level_number = len(levels) + 1
        rows = []
        for i in sorted(remaining):
            reachability, antecedent, intersection = restricted_sets(reachability_matrix, i,
                                                                     remaining)
            rows.append({
                'factor_index': i,
                'reachability': reachability,
                'antecedent': antecedent,
                'intersection': intersection
            })

        assigned = [row['factor_index'] for row in rows
                    if row['reachability'] == row['intersection']]
        if not assigned:
            raise RuntimeError(
                f"Level partitioning made no progress at level {level_number}: "
                f"factors {sorted(remaining)} all reach something outside their "
                "intersection set, so the reachability matrix is not transitive"
            )

        iterations.append({
            'level': level_number,
            'candidates': sorted(remaining),
            'rows': rows,
            'assigned': assigned
        })
        levels.append({'level': level_number, 'elements': assigned})
        factor_levels.update({i: level_number for i in assigned})
        remaining.difference_update(assigned)

    return {
        'levels': levels,
        'factor_levels': factor_levels,
        'iterations': iterations,
        'max_level': len(levels)
    }


def get_level_elements(levels, level_number):
    """Factor indices at level_number ([] when there is no such level)."""
    for level in levels:
        if level['level'] == level_number:
            return list(level['elements'])
    return []


# =============================================================================
# TABLES
# =============================================================================

def format_set_for_display(index_set, factors):
    """Factor names of an index set, in index order, joined by ', '."""
    return ", ".join(factors[i]['name'] for i in sorted(index_set))


def create_set_row(factor, reachability, antecedent, intersection, level, factors):
    """One row of a set table: the factor, its three sets as code lists, and its level."""
    return {
        'Factor': get_factor_label(factor),
        'Reachability_Set_R(i)': format_set_for_display(reachability, factors),
        'Antecedent_Set_A(i)': format_set_for_display(antecedent, factors),
        'Intersection_C(i)': format_set_for_display(intersection, factors),
        'Level': level
    }


def create_iteration_dataframe(iteration_data, factors):
    """
    Table of one partitioning round.

    One row per candidate factor; 'Level' holds the round's level number
    (as text) for the factors assigned in that round and is blank otherwise.
    """
    assigned = set(iteration_data['assigned'])
    level_text = str(iteration_data['level'])

    data = [
        create_set_row(factors[row['factor_index']], row['reachability'], row['antecedent'],
                       row['intersection'],
                       level_text if row['factor_index'] in assigned else "", factors)
        for row in iteration_data['rows']
    ]
    return pd.DataFrame(data, columns=SET_TABLE_COLUMNS)


def create_final_levels_dataframe(partition_result, factors):
    """Level of every factor, ordered by level then factor position."""
    factor_levels = partition_result['factor_levels']

    df = pd.DataFrame(
        [(i, f['name'], f['description'] or f['name'], factor_levels.get(i, 0))
         for i, f in enumerate(factors)],
        columns=['Factor_Index', 'Factor_Code', 'Factor_Name', 'Level']
    )
    return df.sort_values(['Level', 'Factor_Index']).reset_index(drop=True)


def create_comprehensive_final_dataframe(frm, partition_result, factors):
    """
    Sets of every factor over the full FRM together with its assigned level.

    Parameters:
    -----------
    frm : numpy.ndarray
        Final Reachability Matrix
    partition_result : dict
        Anything carrying 'factor_levels' (e.g. the result of partition_levels())
    factors : list
        Factor dictionaries

    Returns:
    --------
    pandas.DataFrame
        One row per factor in factor order; 'Level' is an int
    """
    factor_levels = partition_result['factor_levels']
    everyone = set(range(len(factors)))

    data = []
    for i, factor in enumerate(factors):
        reachability, antecedent, intersection = restricted_sets(frm, i, everyone)
        data.append(create_set_row(factor, reachability, antecedent, intersection,
                                   factor_levels.get(i, 0), factors))

    return pd.DataFrame(data, columns=SET_TABLE_COLUMNS)


def create_level_summary_dataframe(partition_result, factors):
    """One row per level listing its factors."""
    data = [{
        'Level': level['level'],
        'Number_of_Factors': len(level['elements']),
        'Factor_Codes': ", ".join(factors[i]['name'] for i in level['elements']),
        'Factor_Names': "; ".join(get_factor_label(factors[i]) for i in level['elements'])
    } for level in partition_result['levels']]

    return pd.DataFrame(data, columns=['Level', 'Number_of_Factors', 'Factor_Codes', 'Factor_Names'])


# =============================================================================
# OUTPUT FUNCTIONS
# =============================================================================

def save_level_partitioning(iterations_dfs, final_levels_df, level_summary_df,
                            comprehensive_df=None, output_dir=None):
    """
    Write the partitioning tables to Excel.

    Output files:
    - ism_lp_<k>.xlsx: round k (k = 1, 2, ...)
    - ism_lp_final.xlsx: comprehensive sets, factor levels and level summary

    Returns:
    --------
    list
        Paths to saved files, rounds first
    """
    output_path = prepare_output_dir(output_dir)
    saved_files = []

    for k, df in enumerate(iterations_dfs, 1):
        round_file = write_workbook(output_path / f"ism_lp_{k}.xlsx",
                                    [(f'Level_{k}_Iteration', df, False)])
        saved_files.append(round_file)
        print(f"Round {k} saved to: {round_file}")

    sheets = []
    if comprehensive_df is not None:
        sheets.append(('Comprehensive_Summary', comprehensive_df, False))
    sheets.append(('Factor_Levels', final_levels_df, False))
    sheets.append(('Level_Summary', level_summary_df, False))

    final_file = write_workbook(output_path / "ism_lp_final.xlsx", sheets)
    saved_files.append(final_file)
    print(f"Level partition saved to: {final_file}")

    return saved_files


def print_level_partitioning_summary(partition_result, factors):
    """Print the levels found, top of the hierarchy first."""
    print("-" * 70)
    print("ISM LEVEL PARTITIONING SUMMARY")
    print("-" * 70)
    print(f"Factors: {len(factors)}    Levels: {partition_result['max_level']}")
    print("Rule: i is assigned when R(i) = R(i) ∩ A(i) over the unassigned factors")
    print()

    for iteration in partition_result['iterations']:
        print(f"  Round {iteration['level']}: {len(iteration['candidates'])} candidates, "
              f"{len(iteration['assigned'])} assigned")
    print()

    print("LEVELS (1 = top / outcomes):")
    for level_number in range(1, partition_result['max_level'] + 1):
        print(f"  Level {level_number}:")
        for i in get_level_elements(partition_result['levels'], level_number):
            print(f"    - {get_factor_label(factors[i])}")
    print()

    print("-" * 70)


# =============================================================================
# MAIN FUNCTION
# =============================================================================

def perform_level_partitioning(frm=None, factors=None, frm_results=None,
                               save=True, output_dir=None):
    """
    Partition the FRM into levels, report them and optionally save the tables.

    Parameters:
    -----------
    frm : numpy.ndarray, optional
        Final Reachability Matrix. If None (or factors is None), taken from
        frm_results, or from a fresh Module 3 run.
    factors : list, optional
        Factor dictionaries matching frm.
    frm_results : dict, optional
        Results from Module 3.
    save : bool, optional
        Whether to write the Excel files.
    output_dir : str or Path, optional
        Output directory.

    Returns:
    --------
    dict
        - 'partition_result', 'levels', 'factor_levels', 'max_level'
        - 'iterations_dfs', 'final_levels_df', 'level_summary_df', 'comprehensive_df'
        - 'factors', 'frm', 'n'
        - 'output_files': list of paths, or None when save=False
    """
    print("\n" + "=" * 70)
    print("MODULE 4: ISM LEVEL PARTITIONING")
    print("=" * 70 + "\n")

    if frm is None or factors is None:
        if frm_results is None:
            print("No FRM given; running Module 3...")
            frm_results = create_reachability_matrix(save=False)
        frm = frm_results['frm']
        factors = frm_results['factors']

    frm = np.asarray(frm, dtype=int)
    n = len(factors)
    print(f"Partitioning {n} factors...")
    partition_result = partition_levels(frm)
    print(f"  {partition_result['max_level']} levels found.\n")

    iterations_dfs = [create_iteration_dataframe(iteration, factors)
                      for iteration in partition_result['iterations']]
    final_levels_df = create_final_levels_dataframe(partition_result, factors)
    level_summary_df = create_level_summary_dataframe(partition_result, factors)
    comprehensive_df = create_comprehensive_final_dataframe(frm, partition_result, factors)

    print_level_partitioning_summary(partition_result, factors)

    output_files = None
    if save:
        print("\nSaving outputs...")
        output_files = save_level_partitioning(iterations_dfs, final_levels_df, level_summary_df,
                                               comprehensive_df, output_dir)

    results = {
        'partition_result': partition_result,
        'levels': partition_result['levels'],
        'factor_levels': partition_result['factor_levels'],
        'max_level': partition_result['max_level'],
        'iterations_dfs': iterations_dfs,
        'final_levels_df': final_levels_df,
        'level_summary_df': level_summary_df,
        'comprehensive_df': comprehensive_df,
        'factors': factors,
        'frm': frm,
        'n': n,
        'output_files': output_files
    }

    print("\n" + "=" * 70)
    print("MODULE 4 COMPLETED SUCCESSFULLY")
    print("=" * 70 + "\n")

    return results


if __name__ == "__main__":
    results = perform_level_partitioning()
    print(results['level_summary_df'].to_string(index=False))
