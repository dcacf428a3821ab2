# SPDX-License-Identifier: PROPRIETARY
# File: m1_data_processing.py
# Purpose: Module 1 - Factor list and SSIM loading, validation, and processing for ISM analysis

import copy
import json
from pathlib import Path

import pandas as pd

# =============================================================================
# CUSTOMIZABLE PARAMETERS - MODIFY THESE AS NEEDED
# =============================================================================

# Study topic shown in summaries and reports
STUDY_TOPIC = "Driving/Dependent Relationships of Critical Factors"

# Factors under study - customize these for your study
# Order matters: position in this list is the factor index in every matrix
FACTORS = [
    {'id': 'B02', 'name': 'B02', 'description': 'Lack of domestic-oriented BIM tools', 'category': 'Technology'},
    {'id': 'B03', 'name': 'B03', 'description': 'Increased workload for model development', 'category': 'Process'},
    {'id': 'B07', 'name': 'B07', 'description': 'Negative attitude towards working collaboratively', 'category': 'People'},
    {'id': 'B08', 'name': 'B08', 'description': 'Lack of a well-established BIM-based workflow', 'category': 'Process'},
    {'id': 'B09', 'name': 'B09', 'description': 'Immature dispute resolution mechanism for BIM implementation', 'category': 'Policy'},
    {'id': 'B10', 'name': 'B10', 'description': 'Lack of professional interactivity', 'category': 'People'},
    {'id': 'B12', 'name': 'B12', 'description': 'Lack of research on BIM implementation in China', 'category': 'Environment'},
    {'id': 'B13', 'name': 'B13', 'description': 'Cost and time required for training', 'category': 'Cost'},
    {'id': 'B14', 'name': 'B14', 'description': 'Cost for BIM experts and tools', 'category': 'Cost'},
    {'id': 'B15', 'name': 'B15', 'description': 'Increased design costs', 'category': 'Cost'},
    {'id': 'B18', 'name': 'B18', 'description': 'Lack of BIM standards', 'category': 'Policy'},
    {'id': 'B19', 'name': 'B19', 'description': 'Lack of standard form of contract for BIM implementation', 'category': 'Policy'},
]

# SSIM source file (relative to this script or absolute path)
# JSON object: row factor id -> column factor id -> symbol (V, A, X, O)
SSIM_FILE = "data/ssim.json"

# Optional factor list file (JSON array or CSV). None uses FACTORS above.
FACTORS_FILE = None

# SSIM symbols
# V = row influences column, A = column influences row,
# X = mutual influence, O = no relationship
SSIM_SYMBOLS = ('V', 'A', 'X', 'O')
SSIM_DEFAULT = 'O'

# Output directory
OUTPUT_DIR_ISM = "output/ism/"

# Column order for CSV factor files
FACTOR_COLUMNS = ['id', 'name', 'description', 'category']

# =============================================================================
# MODULE FUNCTIONS
# =============================================================================

def get_script_directory():
    """Get the directory where this script is located."""
    return Path(__file__).parent.resolve()


def resolve_path(path):
    """Resolve a path relative to the script directory (absolute paths pass through)."""
    return get_script_directory() / path


def normalize_factor(record, position=None):
    """
    Normalize a raw factor record into the standard factor dictionary.

    Parameters:
    -----------
    record : dict
        Raw factor record with at least an 'id'
    position : int, optional
        Position of the record in its list (used in error messages)

    Returns:
    --------
    dict
        Factor with keys 'id', 'name', 'description', 'category'
    """
    where = f" at position {position}" if position is not None else ""

    if not isinstance(record, dict):
        raise ValueError(f"Factor record{where} must be an object, got {type(record).__name__}")

    factor_id = record.get('id')
    if factor_id is None or str(factor_id).strip() == "":
        raise ValueError(f"Factor record{where} is missing an 'id'")

    factor_id = str(factor_id).strip()
    name = record.get('name') or factor_id
    description = record.get('description') or ''
    category = record.get('category') or None

    return {
        'id': factor_id,
        'name': str(name),
        'description': str(description),
        'category': category
    }


def load_factors(factors_file=None):
    """
    Load the ordered factor list from a JSON or CSV file.

    JSON format: array of {"id", "name", "description", "category"} objects.
    CSV format: columns id, name, description, category (header row required).

    Parameters:
    -----------
    factors_file : str or Path, optional
        Path to the factor file. If None, uses FACTORS_FILE, and when that is
        also None returns a copy of FACTORS.

    Returns:
    --------
    list
        List of normalized factor dictionaries
    """
    if factors_file is None:
        factors_file = FACTORS_FILE
    if factors_file is None:
        return [normalize_factor(f, i) for i, f in enumerate(FACTORS)]

    file_path = resolve_path(factors_file)
    suffix = file_path.suffix.lower()

    if suffix == '.json':
        with file_path.open("r", encoding="utf-8") as handle:
            records = json.load(handle)
        if not isinstance(records, list):
            raise ValueError(f"Factor file {file_path} must contain a JSON array")
    elif suffix == '.csv':
        data = pd.read_csv(file_path, dtype=str, keep_default_na=False)
        data.columns = data.columns.str.strip().str.lower()
        if 'id' not in data.columns:
            raise ValueError(f"Factor file {file_path} has no 'id' column")
        records = data.to_dict(orient='records')
    else:
        raise ValueError(f"Unsupported factor file type: {file_path.suffix} (use .json or .csv)")

    return [normalize_factor(record, i) for i, record in enumerate(records)]


def save_factors(factors, factors_file):
    """
    Save the factor list as JSON or CSV (chosen by file suffix).

    Returns:
    --------
    Path
        Path to saved file
    """
    file_path = resolve_path(factors_file)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    suffix = file_path.suffix.lower()

    if suffix == '.json':
        with file_path.open("w", encoding="utf-8") as handle:
            json.dump(factors, handle, indent=2, ensure_ascii=False)
    elif suffix == '.csv':
        df = pd.DataFrame(factors, columns=FACTOR_COLUMNS)
        df.to_csv(file_path, index=False)
    else:
        raise ValueError(f"Unsupported factor file type: {file_path.suffix} (use .json or .csv)")

    return file_path


def load_ssim(ssim_file=None):
    """
    Load SSIM judgments from a JSON file.

    Parameters:
    -----------
    ssim_file : str or Path, optional
        Path to the JSON file. If None, uses SSIM_FILE.

    Returns:
    --------
    dict
        Nested dictionary: row factor id -> column factor id -> symbol
    """
    if ssim_file is None:
        ssim_file = SSIM_FILE

    file_path = resolve_path(ssim_file)
    with file_path.open("r", encoding="utf-8") as handle:
        ssim = json.load(handle)

    if not isinstance(ssim, dict):
        raise ValueError(f"SSIM file {file_path} must contain a JSON object")

    return ssim


def save_ssim(ssim, ssim_file):
    """Save SSIM judgments to a JSON file."""
    file_path = resolve_path(ssim_file)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with file_path.open("w", encoding="utf-8") as handle:
        json.dump(ssim, handle, indent=2, ensure_ascii=False)

    return file_path


def prepare_output_dir(output_dir=None):
    """Resolve the output directory (default OUTPUT_DIR_ISM) and create it."""
    if output_dir is None:
        output_dir = OUTPUT_DIR_ISM

    output_path = resolve_path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    return output_path


def write_workbook(file_path, sheets):
    """
    Write DataFrames into one Excel workbook.

    Parameters:
    -----------
    file_path : Path
        Target .xlsx file
    sheets : list
        (sheet_name, DataFrame, write_index) tuples in sheet order

    Returns:
    --------
    Path
        Path to saved file
    """
    try:
        with pd.ExcelWriter(file_path, engine='openpyxl') as writer:
            for sheet_name, df, write_index in sheets:
                df.to_excel(writer, sheet_name=sheet_name, index=write_index)
    except PermissionError as exc:
        raise PermissionError(
            f"Cannot write to file: {file_path}\n"
            "Please close the Excel file if it's open and try again."
        ) from exc

    return file_path


def get_factor_ids(factors):
    """Return the ordered list of factor ids."""
    return [f['id'] for f in factors]


def get_factor_label(factor):
    """Return the display label 'name: description' for a factor."""
    if factor.get('description'):
        return f"{factor['name']}: {factor['description']}"
    return factor['name']


def get_factor_labels(factors):
    """Return display labels for all factors, in order."""
    return [get_factor_label(f) for f in factors]


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================

def validate_factor_ids(n, factor_ids):
    """
    Check the factor count and identifier list.

    Returns:
    --------
    list
        Error messages (empty when valid)
    """
    errors = []

    if n != len(factor_ids):
        errors.append(f"Factor count {n} does not match {len(factor_ids)} factor ids")

    seen = set()
    for position, factor_id in enumerate(factor_ids):
        if not isinstance(factor_id, str) or factor_id.strip() == "":
            errors.append(f"Factor id at position {position} must be a non-empty string")
            continue
        if factor_id in seen:
            errors.append(f"Duplicate factor id '{factor_id}'")
        seen.add(factor_id)

    return errors


def validate_ssim(ssim, factor_ids):
    """
    Check SSIM judgments against the symbol alphabet and the factor ids.

    Lower-triangle and diagonal entries are allowed here; the encoder
    ignores them.

    Parameters:
    -----------
    ssim : dict
        Nested dictionary: row factor id -> column factor id -> symbol
    factor_ids : list
        Ordered factor identifiers

    Returns:
    --------
    list
        Error messages (empty when valid)
    """
    errors = []

    if not isinstance(ssim, dict):
        return [f"SSIM must be a mapping of row id to columns, got {type(ssim).__name__}"]

    known = set(factor_ids)

    for row_id, row in ssim.items():
        if row_id not in known:
            errors.append(f"SSIM row '{row_id}' is not a known factor id")
            continue
        if row is None:
            continue
        if not isinstance(row, dict):
            errors.append(f"SSIM row '{row_id}' must be a mapping of column id to symbol")
            continue

        for col_id, symbol in row.items():
            if col_id not in known:
                errors.append(f"SSIM cell ('{row_id}', '{col_id}'): '{col_id}' is not a known factor id")
                continue
            if symbol is None:
                continue
            if symbol not in SSIM_SYMBOLS:
                errors.append(
                    f"SSIM cell ('{row_id}', '{col_id}') must be one of {list(SSIM_SYMBOLS)} (got {symbol!r})"
                )

    return errors


def validate_analysis_input(n, factor_ids, ssim):
    """
    Validate analysis input and raise ValueError listing every problem found.
    """
    errors = validate_factor_ids(n, factor_ids)
    errors.extend(validate_ssim(ssim, factor_ids))

    if errors:
        message = "Invalid ISM input:\n" + "\n".join(f" - {error}" for error in errors)
        raise ValueError(message)


# =============================================================================
# SUMMARY AND OUTPUT FUNCTIONS
# =============================================================================

def count_entered_judgments(ssim):
    """Count non-empty cells present in the SSIM mapping."""
    count = 0
    for row in ssim.values():
        if isinstance(row, dict):
            count += sum(1 for symbol in row.values() if symbol is not None)
    return count


def print_data_summary(factors, ssim, topic=None):
    """
    Print a summary of the loaded factors and SSIM.

    Parameters:
    -----------
    factors : list
        Factor dictionaries
    ssim : dict
        SSIM judgments
    topic : str, optional
        Study topic. If None, uses STUDY_TOPIC.
    """
    if topic is None:
        topic = STUDY_TOPIC

    n = len(factors)

    print("=" * 80)
    print("DATA SUMMARY")
    print("=" * 80)
    print(f"Topic: {topic}")
    print(f"Total Factors: {n}")
    print(f"Upper-Triangle Pairs: {n * (n - 1) // 2}")
    print(f"Entered Judgments: {count_entered_judgments(ssim)}")
    print("-" * 80)

    print("Factors:")
    for i, factor in enumerate(factors, 1):
        category = f" [{factor['category']}]" if factor.get('category') else ""
        print(f"  {i:>2}. {get_factor_label(factor)}{category}")
    print("=" * 80)


def save_inputs(factors, ssim, output_dir=None):
    """
    Save a snapshot of the factors and SSIM used for the run.

    Output files:
    - ism_factors.json
    - ism_ssim.json

    Returns:
    --------
    tuple
        Paths to saved files
    """
    output_path = prepare_output_dir(output_dir)

    factors_file = save_factors(factors, output_path / "ism_factors.json")
    print(f"Factors saved to: {factors_file}")

    ssim_file = save_ssim(ssim, output_path / "ism_ssim.json")
    print(f"SSIM saved to: {ssim_file}")

    return factors_file, ssim_file


def process_data(factors=None, ssim=None, factors_file=None, ssim_file=None,
                 topic=None, save=False, output_dir=None):
    """
    Main function to load and validate ISM input data.

    Parameters:
    -----------
    factors : list, optional
        Factor dictionaries. If None, loads from factors_file / FACTORS.
    ssim : dict, optional
        SSIM judgments. If None, loads from ssim_file / SSIM_FILE; an empty
        SSIM is used when that file does not exist.
    factors_file : str or Path, optional
        Factor file (JSON or CSV)
    ssim_file : str or Path, optional
        SSIM JSON file
    topic : str, optional
        Study topic
    save : bool, optional
        Whether to save a snapshot of the inputs
    output_dir : str or Path, optional
        Output directory for the snapshot

    Returns:
    --------
    dict
        Dictionary containing:
        - 'factors': Normalized factor list
        - 'factor_ids': Ordered factor ids
        - 'factor_labels': Display labels
        - 'n': Number of factors
        - 'ssim': SSIM judgments (deep copy)
        - 'topic': Study topic
        - 'output_files': Paths to saved files (if save=True)
    """
    if topic is None:
        topic = STUDY_TOPIC

    print("\n" + "=" * 80)
    print("MODULE 1: DATA PROCESSING")
    print("=" * 80 + "\n")

    # Step 1: Load factors
    if factors is None:
        print("Loading factors...")
        factors = load_factors(factors_file)
    else:
        factors = [normalize_factor(f, i) for i, f in enumerate(factors)]
    print(f"Factors loaded: {len(factors)}\n")

    # Step 2: Load SSIM
    if ssim is None:
        if ssim_file is None:
            ssim_file = SSIM_FILE
        if resolve_path(ssim_file).exists():
            print(f"Loading SSIM from {ssim_file}...")
            ssim = load_ssim(ssim_file)
        else:
            print(f"SSIM file {ssim_file} not found. All relationships default to 'O'.")
            ssim = {}
    ssim = copy.deepcopy(ssim)

    # Step 3: Validate
    factor_ids = get_factor_ids(factors)
    print("Validating input...")
    validate_analysis_input(len(factors), factor_ids, ssim)
    print("  Input is valid.\n")

    # Step 4: Print summary
    print_data_summary(factors, ssim, topic)

    # Step 5: Save snapshot
    output_files = None
    if save:
        print("\nSaving inputs...")
        output_files = save_inputs(factors, ssim, output_dir)

    results = {
        'factors': factors,
        'factor_ids': factor_ids,
        'factor_labels': get_factor_labels(factors),
        'n': len(factors),
        'ssim': ssim,
        'topic': topic,
        'output_files': output_files
    }

    print("=" * 80)
    print("MODULE 1 COMPLETED SUCCESSFULLY")
    print("=" * 80 + "\n")

    return results


# =============================================================================
# STANDALONE EXECUTION
# =============================================================================

if __name__ == "__main__":
    results = process_data()

    print("\n" + "=" * 80)
    print("FACTORS")
    print("=" * 80)
    print(pd.DataFrame(results['factors']).to_string(index=False))
