"""
loader.py - User Roster Loader
==============================
Besides the "user_info" list in the JSON config, users can be kept in a
spreadsheet and referenced with "user_file". This module reads that file.

Supported Input Formats:
------------------------
- Excel files: .xlsx, .xls
- CSV files: .csv

Column Name Normalization:
--------------------------
Headers like "Mobile", "mobile_no", "Phone" or "Apply Code" are normalized so
the file only needs two recognizable columns: MOBILE and CODE.
"""

import pandas as pd
from typing import List
from pathlib import Path
import re
import zipfile

from .errors import ConfigError
from .models import User


# Maps normalized header names to the canonical column names
COLUMN_MAP = {
    'MOBILE': 'MOBILE',
    'MOBILENO': 'MOBILE',
    'PHONE': 'MOBILE',
    'CODE': 'CODE',
    'APPLYCODE': 'CODE',
    'QUERYCODE': 'CODE',
}

REQUIRED_COLUMNS = ['MOBILE', 'CODE']


def normalize_header(header: str) -> str:
    """
    Standardize a column name by removing spaces/underscores and converting to uppercase.

    Examples:
        normalize_header("Mobile No")   -> "MOBILENO"
        normalize_header("apply_code")  -> "APPLYCODE"
    """
    normalized = re.sub(r'[\s_]+', '', header)
    return normalized.strip().upper()


def load_users(filepath: str | Path) -> List[User]:
    """
    Load users from an Excel or CSV roster.

    Every cell is read as a string so mobile numbers and codes keep their
    leading zeros. Fully empty rows and rows without a mobile are dropped.

    Args:
        filepath: Path to the roster file (.xlsx, .xls or .csv)

    Returns:
        List of User objects in file order

    Raises:
        ConfigError: If the file is missing, can't be read or parsed, has an
                     unsupported suffix, or lacks the MOBILE / CODE columns
    """
    path = Path(filepath)
    if not path.exists():
        raise ConfigError(f"user file not found: {filepath}")

    # -------------------------------------------------------------------------
    # STEP 1: Read the file based on its type
    # -------------------------------------------------------------------------
    # dtype=str keeps leading zeros in mobile numbers and codes
    #
    # Read errors are reported as ConfigError:
    #   - ValueError covers empty files (EmptyDataError), malformed rows
    #     (ParserError) and non-UTF-8 CSVs (UnicodeDecodeError)
    #   - ImportError covers a missing Excel engine (openpyxl / xlrd)
    #   - OSError covers permission and I/O problems
    #   - BadZipFile covers a corrupt .xlsx
    try:
        if path.suffix in ['.xlsx', '.xls']:
            df = pd.read_excel(path, dtype=str)
        elif path.suffix == '.csv':
            df = pd.read_csv(path, dtype=str, encoding='utf-8')
        else:
            raise ConfigError(
                f"Unsupported user file type: {path.suffix}. "
                "Only .csv, .xlsx, and .xls files are supported."
            )
    except (ValueError, ImportError, OSError, zipfile.BadZipFile) as e:
        raise ConfigError(f"read user file: {path} fail: {e}") from e

    df.dropna(how='all', inplace=True)

    # -------------------------------------------------------------------------
    # STEP 2: Normalize column names
    # -------------------------------------------------------------------------
    renamed = {}
    for col in df.columns:
        final_name = COLUMN_MAP.get(normalize_header(str(col)), normalize_header(str(col)))

        # First matching column wins if the file has duplicates
        if final_name not in renamed.values():
            renamed[col] = final_name

    df = df[list(renamed)].rename(columns=renamed)

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ConfigError(
            f"Required columns missing in {path.name}: {missing}. "
            f"Available columns after normalization: {list(df.columns)}"
        )

    # -------------------------------------------------------------------------
    # STEP 3: Build User objects
    # -------------------------------------------------------------------------
    df = df.fillna('')

    users = []
    for row in df.to_dict('records'):
        mobile = str(row['MOBILE']).strip()
        if not mobile:
            continue
        users.append(User(mobile=mobile, code=str(row['CODE']).strip()))

    return users
