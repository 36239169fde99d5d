"""
Utility functions for working with registries and code columns in DataFrames.
"""

import pandas as pd
from typing import List, Dict, Optional, Union
import logging

from .codes import normalize_digits

logger = logging.getLogger(__name__)


def validate_entries_file(
    file_path: str,
    code_column: str = "code",
    description_column: str = "description",
    delimiter: str = ",",
    encoding: str = "utf-8",
    sample_size: int = 5
) -> Dict:
    """
    Inspect an entries file before loading it and return statistics.

    Args:
        file_path: Path to the entries file
        code_column: Name of code column
        description_column: Name of description column
        delimiter: File delimiter
        encoding: File encoding
        sample_size: Number of sample rows to return

    Returns:
        Dictionary with validation results and statistics
    """
    try:
        df = pd.read_csv(file_path, delimiter=delimiter, encoding=encoding, dtype=str)
    except (OSError, ValueError) as e:
        logger.error(f"Error reading entries file {file_path}: {e}")
        return {
            "valid": False,
            "error": str(e)
        }

    results = {
        "valid": True,
        "total_rows": len(df),
        "columns": df.columns.tolist(),
        "has_code_column": code_column in df.columns,
        "has_description_column": description_column in df.columns,
    }

    if results["has_code_column"] and results["has_description_column"]:
        subset = df[[code_column, description_column]]
        codes = subset[code_column].dropna().map(normalize_digits)
        results["null_codes"] = int(subset[code_column].isnull().sum())
        results["null_descriptions"] = int(subset[description_column].isnull().sum())
        results["non_numeric_codes"] = int((~codes.str.fullmatch(r"[0-9]+")).sum())
        results["unique_codes"] = int(codes.nunique())
        results["duplicate_codes"] = len(codes) - results["unique_codes"]
        results["levels"] = {
            str(length): int(count)
            for length, count in codes.str.len().value_counts().sort_index().items()
        }
        results["sample"] = subset.head(sample_size).to_dict(orient="records")
        if results["non_numeric_codes"] or results["duplicate_codes"] or results["null_codes"]:
            results["valid"] = False
            results["error"] = "Codes are missing, non-numeric or duplicated"
    else:
        results["valid"] = False
        results["error"] = "Required columns not found"

    return results


def find_missing_codes(
    df: pd.DataFrame,
    code_column: str,
    registry,
    return_dataframe: bool = True
) -> Union[pd.DataFrame, List[str]]:
    """
    Find codes in a DataFrame that are missing from a registry.

    Args:
        df: DataFrame containing codes
        code_column: Name of column with codes
        registry: NomenclatureRegistry instance
        return_dataframe: If True, return DataFrame of missing codes

    Returns:
        DataFrame or list with missing codes
    """
    if code_column not in df.columns:
        raise ValueError(f"Column '{code_column}' not found in DataFrame")

    codes = df[code_column].dropna().astype(str).unique()
    missing = [code for code in codes if not registry.exists(code)]

    if len(codes):
        logger.info(
            f"Found {len(missing)} missing codes out of "
            f"{len(codes)} unique codes ({len(missing)/len(codes)*100:.1f}%)"
        )

    if return_dataframe:
        return pd.DataFrame({"missing_code": missing})

    return missing


def enrich_dataframe(
    df: pd.DataFrame,
    code_column: str,
    registry,
    description_column: str = "description",
    add_hierarchy: bool = False,
    inplace: bool = False
) -> pd.DataFrame:
    """
    Add a description column (and optionally chapter/heading columns) to a DataFrame.

    Args:
        df: DataFrame with code column
        code_column: Name of column containing codes
        registry: NomenclatureRegistry instance
        description_column: Name for new description column
        add_hierarchy: Also add "chapter" and "heading" columns
        inplace: Modify DataFrame inplace

    Returns:
        DataFrame with added columns
    """
    if not inplace:
        df = df.copy()

    if code_column not in df.columns:
        raise ValueError(f"Column '{code_column}' not found in DataFrame")

    df[description_column] = df[code_column].apply(
        lambda code: registry.get_description(code, default="Unknown")
    )

    if add_hierarchy:
        digits = df[code_column].astype(str).map(normalize_digits)
        df["chapter"] = digits.str[:2]
        df["heading"] = digits.str[:4]

    logger.info(f"Added '{description_column}' column to DataFrame")

    return df


def export_registry_to_csv(
    registry,
    output_path: str,
    encoding: str = "utf-8"
):
    """
    Export a registry to a CSV file that ``NomenclatureRegistry.from_file`` can read back.

    Args:
        registry: NomenclatureRegistry instance
        output_path: Path for output CSV file
        encoding: File encoding
    """
    df = pd.DataFrame([
        {
            "code": entry.code,
            "description": entry.description,
            "parent_chapter": entry.chapter if len(entry.code) > 2 else None,
            "parent_heading": entry.heading if len(entry.code) > 4 else None,
            "section": entry.section,
            "notes": ";".join(entry.notes) or None,
        }
        for entry in registry.entries()
    ], columns=["code", "description", "parent_chapter", "parent_heading", "section", "notes"])

    df.to_csv(output_path, index=False, encoding=encoding)
    logger.info(f"Exported {len(df)} entries to {output_path}")


def chapter_summary(registry, chapters: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Count headings and subheadings per chapter.

    Args:
        registry: NomenclatureRegistry instance
        chapters: Restrict to these chapters

    Returns:
        DataFrame with columns chapter, description, headings, subheadings
    """
    rows = []
    for chapter in registry.children():
        if chapters is not None and chapter.code not in chapters:
            continue
        headings = registry.children(chapter.code)
        rows.append({
            "chapter": chapter.code,
            "description": chapter.description,
            "headings": len(headings),
            "subheadings": sum(len(registry.children(h.code)) for h in headings),
        })
    return pd.DataFrame(rows, columns=["chapter", "description", "headings", "subheadings"])
