# SPDX-License-Identifier: PROPRIETARY
# File: m7_run.py
# Purpose: Module 7 - ISM-MICMAC analysis entry point and complete pipeline runner

"""
ISM-MICMAC Complete Pipeline

This module provides the single analysis entry point and runs the complete
pipeline from M1 to M6:

    M1: Data Processing → Factors and SSIM
    M2: SSIM Encoding → Initial Reachability Matrix (IRM)
    M3: Transitivity → Final Reachability Matrix (FRM), powers
    M4: Level Partitioning
    M5: Canonical Matrix and Digraph
    M6: MICMAC Analysis

Process Flow:
    SSIM → IRM → FRM → (Level Partitioning, MICMAC Analysis)

run_ism_analysis() is the pure computation: it reads nothing from disk,
prints nothing and returns one result record. The pipeline functions wrap
it with progress reporting and file outputs.
"""

import copy
import time
from datetime import datetime

from m1_data_processing import (
    OUTPUT_DIR_ISM,
    prepare_output_dir,
    process_data,
    validate_analysis_input,
    write_workbook
)
from m2_ism_irm import create_initial_reachability_matrix, create_irm_dataframe, encode_ssim
from m3_ism_frm import (
    calculate_dependence_power,
    calculate_driving_power,
    compute_final_reachability,
    create_frm_dataframe,
    create_reachability_matrix,
    find_transitivity_entries
)
from m4_ism_lp import create_comprehensive_final_dataframe, partition_levels, perform_level_partitioning
from m5_ism_diagraph import create_canonical_matrix, create_ism_digraph
from m6_ism_micmac import QUADRANT_ORDER, classify_micmac, group_by_quadrant, perform_micmac_analysis

# =============================================================================
# CONFIGURATION
# =============================================================================

# Set to True to save all intermediate outputs
SAVE_INTERMEDIATE = True

# Which matrix supplies the digraph edges: 'irm' or 'canonical'
DIGRAPH_EDGE_SOURCE = 'irm'

# =============================================================================
# ANALYSIS ENTRY POINT
# =============================================================================

def run_ism_analysis(n, factor_ids, ssim):
    """
    Run the complete ISM-MICMAC computation for one submitted SSIM.

    Parameters:
    -----------
    n : int
        Number of factors
    factor_ids : list
        Ordered, distinct factor identifiers (position = matrix index)
    ssim : dict
        Nested dictionary: row factor id -> column factor id -> symbol.
        Only upper-triangle cells are read; missing cells mean 'O'.
        The mapping is copied and never modified.

    Returns:
    --------
    dict
        - 'n', 'factor_ids'
        - 'irm': Initial Reachability Matrix
        - 'frm': Final Reachability Matrix
        - 'transitivity_entries': (i, j) cells added by closure
        - 'levels': [{'level': k, 'elements': [indices]}]
        - 'factor_levels': Factor index -> level
        - 'canonical_matrix': Reduced adjacency matrix
        - 'micmac': {'split_point', 'points'}

    Raises:
    -------
    ValueError
        If the factor list or the SSIM is invalid.
    RuntimeError
        If level partitioning cannot make progress.
    """
    ssim = copy.deepcopy(ssim)
    factor_ids = list(factor_ids)

    validate_analysis_input(n, factor_ids, ssim)

    irm = encode_ssim(n, factor_ids, ssim)
    frm = compute_final_reachability(irm)
    partition_result = partition_levels(frm)

    return {
        'n': n,
        'factor_ids': factor_ids,
        'irm': irm,
        'frm': frm,
        'transitivity_entries': find_transitivity_entries(irm, frm),
        'levels': partition_result['levels'],
        'factor_levels': partition_result['factor_levels'],
        'canonical_matrix': create_canonical_matrix(frm),
        'micmac': classify_micmac(frm)
    }


# =============================================================================
# COMBINED RESULTS WORKBOOK
# =============================================================================

def create_analysis_workbook_dataframes(analysis, factors):
    """
    Build the three sheets of the combined results workbook.

    Returns:
    --------
    dict
        Sheet name -> DataFrame, in sheet order:
        'Level_Partition', 'Final_Matrix' (transitive entries marked 1*),
        'Initial_Matrix'
    """
    frm = analysis['frm']
    partition_result = {'factor_levels': analysis['factor_levels']}

    return {
        'Level_Partition': create_comprehensive_final_dataframe(frm, partition_result, factors),
        'Final_Matrix': create_frm_dataframe(
            frm,
            calculate_driving_power(frm),
            calculate_dependence_power(frm),
            factors,
            transitivity_entries=analysis['transitivity_entries']
        ),
        'Initial_Matrix': create_irm_dataframe(analysis['irm'], factors)
    }


def save_analysis_workbook(analysis, factors, output_dir=None, run_date=None):
    """
    Save the combined results workbook.

    Output file:
    - ism_analysis_results_<YYYY-MM-DD>.xlsx

    Returns:
    --------
    Path
        Path to saved file
    """
    if run_date is None:
        run_date = datetime.now()

    filename = f"ism_analysis_results_{run_date.strftime('%Y-%m-%d')}.xlsx"
    sheets = create_analysis_workbook_dataframes(analysis, factors)

    file_path = write_workbook(prepare_output_dir(output_dir) / filename, [
        ('Level_Partition', sheets['Level_Partition'], False),
        ('Final_Matrix', sheets['Final_Matrix'], True),
        ('Initial_Matrix', sheets['Initial_Matrix'], True),
    ])

    print(f"Analysis results saved to: {file_path}")
    return file_path


# =============================================================================
# PIPELINE EXECUTION
# =============================================================================

def run_ism_pipeline(data_results, save=True, output_dir=None, edge_source=None):
    """
    Run the ISM-MICMAC pipeline (M2-M6) on loaded input data.

    Parameters:
    -----------
    data_results : dict
        Results from Module 1
    save : bool
        Whether to save intermediate outputs
    output_dir : str or Path, optional
        Output directory
    edge_source : str, optional
        Digraph edge source ('irm' or 'canonical')

    Returns:
    --------
    dict
        Results from all modules, keyed 'm2' ... 'm6', plus 'analysis'
        (the run_ism_analysis record) and 'workbook' (path or None)
    """
    if edge_source is None:
        edge_source = DIGRAPH_EDGE_SOURCE

    results = {}

    print("\n" + "=" * 80)
    print("ISM-MICMAC ANALYSIS (M2-M6)")
    print("=" * 80)

    # M2: IRM
    print("\n[1/5] Running M2: Initial Reachability Matrix...")
    start = time.time()
    results['m2'] = create_initial_reachability_matrix(data_results=data_results, save=save,
                                                       output_dir=output_dir)
    print(f"      Completed in {time.time() - start:.2f}s")

    # M3: FRM
    print("\n[2/5] Running M3: Final Reachability Matrix...")
    start = time.time()
    results['m3'] = create_reachability_matrix(irm_results=results['m2'], save=save,
                                               output_dir=output_dir)
    print(f"      Transitivity entries added: {len(results['m3']['transitivity_entries'])}")
    print(f"      Completed in {time.time() - start:.2f}s")

    # M4: Level Partitioning
    print("\n[3/5] Running M4: Level Partitioning...")
    start = time.time()
    results['m4'] = perform_level_partitioning(frm_results=results['m3'], save=save,
                                               output_dir=output_dir)
    print(f"      Identified {results['m4']['max_level']} hierarchical levels")
    print(f"      Completed in {time.time() - start:.2f}s")

    # M5: Digraph
    print("\n[4/5] Running M5: Canonical Matrix and Digraph...")
    start = time.time()
    results['m5'] = create_ism_digraph(frm_results=results['m3'], lp_results=results['m4'],
                                       edge_source=edge_source, save=save, output_dir=output_dir)
    print(f"      Created digraph with {len(results['m5']['edges'])} edges")
    print(f"      Completed in {time.time() - start:.2f}s")

    # M6: MICMAC
    print("\n[5/5] Running M6: MICMAC Analysis...")
    start = time.time()
    results['m6'] = perform_micmac_analysis(frm_results=results['m3'], save=save,
                                            output_dir=output_dir)
    counts = {q: len(m) for q, m in group_by_quadrant(results['m6']['micmac']['points']).items()}
    print(f"      Classification: {counts}")
    print(f"      Completed in {time.time() - start:.2f}s")

    # Combined record and workbook
    results['analysis'] = run_ism_analysis(data_results['n'], data_results['factor_ids'],
                                           data_results['ssim'])
    results['workbook'] = None
    if save:
        results['workbook'] = save_analysis_workbook(results['analysis'], data_results['factors'],
                                                     output_dir)

    print("\n" + "-" * 80)
    print("ISM-MICMAC ANALYSIS COMPLETE")
    print("-" * 80)

    return results


# =============================================================================
# SUMMARY REPORT
# =============================================================================

def print_final_summary(data_results, ism_results, total_time):
    """Print final summary of the complete analysis."""
    analysis = ism_results['analysis']
    factors = data_results['factors']

    print("\n")
    print("=" * 80)
    print("                    FINAL SUMMARY REPORT")
    print("=" * 80)
    print(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"Total Execution Time: {total_time:.2f} seconds")
    print(f"Topic: {data_results['topic']}")
    print(f"Number of Factors Analyzed: {analysis['n']}")
    print()

    print("-" * 80)
    print("ISM REACHABILITY MATRIX")
    print("-" * 80)
    print(f"  Initial 1s (IRM): {int(analysis['irm'].sum())}")
    print(f"  Final 1s (FRM): {int(analysis['frm'].sum())}")
    print(f"  Transitivity Entries Added: {len(analysis['transitivity_entries'])}")
    print(f"  Canonical Edges: {int(analysis['canonical_matrix'].sum())}")
    print()

    print("-" * 80)
    print("ISM HIERARCHICAL LEVELS")
    print("-" * 80)
    print(f"  Total Levels: {len(analysis['levels'])}")
    for level in analysis['levels']:
        codes = [factors[i]['name'] for i in level['elements']]
        print(f"  Level {level['level']}: {', '.join(codes)}")
    print()

    print("-" * 80)
    print("MICMAC CLASSIFICATION")
    print("-" * 80)
    print(f"  Split point: {analysis['micmac']['split_point']:.2f}")
    groups = group_by_quadrant(analysis['micmac']['points'])
    for quadrant in QUADRANT_ORDER:
        codes = [factors[i]['name'] for i in groups[quadrant]]
        print(f"  {quadrant.upper()}: {', '.join(codes) if codes else '(None)'}")
    print()

    print("=" * 80)
    print("                    ANALYSIS COMPLETE")
    print("=" * 80)


# =============================================================================
# MAIN FUNCTION
# =============================================================================

def run_complete_pipeline(factors=None, ssim=None, factors_file=None, ssim_file=None,
                          save=True, output_dir=None, edge_source=None):
    """
    Run the complete ISM-MICMAC pipeline (M1-M6).

    Parameters:
    -----------
    factors : list, optional
        Factor dictionaries. If None, uses the configured study factors.
    ssim : dict, optional
        SSIM judgments. If None, loads the configured SSIM file.
    factors_file, ssim_file : str or Path, optional
        Input files overriding the configured ones.
    save : bool
        Whether to save all outputs to files.
    output_dir : str or Path, optional
        Output directory.
    edge_source : str, optional
        Digraph edge source ('irm' or 'canonical').

    Returns:
    --------
    dict
        - 'data': Results from M1
        - 'ism': Results from M2-M6 plus the analysis record
        - 'total_time': Total execution time
    """
    total_start = time.time()

    print("\n")
    print("*" * 80)
    print("*" + " " * 78 + "*")
    print("*" + "ISM-MICMAC ANALYSIS".center(78) + "*")
    print("*" + "Complete Pipeline Execution".center(78) + "*")
    print("*" + " " * 78 + "*")
    print("*" * 80)
    print()
    print(f"Start Time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"Save Outputs: {save}")
    print()

    data_results = process_data(factors=factors, ssim=ssim, factors_file=factors_file,
                                ssim_file=ssim_file, save=save, output_dir=output_dir)

    ism_results = run_ism_pipeline(data_results, save=save, output_dir=output_dir,
                                   edge_source=edge_source)

    total_time = time.time() - total_start

    print_final_summary(data_results, ism_results, total_time)

    return {
        'data': data_results,
        'ism': ism_results,
        'total_time': total_time
    }


# =============================================================================
# STANDALONE EXECUTION
# =============================================================================

if __name__ == "__main__":
    print("\n" + "=" * 80)
    print("ISM-MICMAC ANALYSIS - COMPLETE PIPELINE")
    print("=" * 80)
    print("\nThis script runs the complete analysis from M1 to M6.")
    print(f"All output files will be saved to {OUTPUT_DIR_ISM}")
    print()

    results = run_complete_pipeline(save=SAVE_INTERMEDIATE)

    print("\nPipeline execution completed successfully!")
    print(f"Total time: {results['total_time']:.2f} seconds")
