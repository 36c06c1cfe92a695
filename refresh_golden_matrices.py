#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Refresh golden QR module matrices for tests.
"""

import json
import pathlib
import subprocess

import asset_label_sheets.qr_encode

# (payload, error correction level)
GOLDEN_CASES = (
	("000-001", "L"),
	("000-001", "M"),
	("A0042", "H"),
	("https://homebox.example/a/000-123", "M"),
)


#============================================
def get_repo_root() -> pathlib.Path:
	"""
	Get the repository root via git, falling back to this file's folder.

	Returns:
		Repository root path.
	"""
	result = subprocess.run(
		["git", "rev-parse", "--show-toplevel"],
		capture_output=True,
		text=True,
		check=False,
	)
	root = result.stdout.strip()
	if result.returncode != 0 or not root:
		return pathlib.Path(__file__).resolve().parent
	return pathlib.Path(root)


#============================================
def matrix_rows(modules: tuple[tuple[bool, ...], ...]) -> list[str]:
	"""
	Encode a module matrix as rows of "1" (dark) and "0" (light).
	"""
	return ["".join("1" if dark else "0" for dark in row) for row in modules]


#============================================
def build_matrices() -> list[dict]:
	"""
	Encode every golden case.

	Returns:
		List of case dicts with payload, level and rows.
	"""
	encoder = asset_label_sheets.qr_encode.QrEncoder(max_version=40)
	cases = []
	for payload, level in GOLDEN_CASES:
		modules = encoder.encode(payload, level)
		cases.append({"payload": payload, "level": level, "rows": matrix_rows(modules)})
	return cases


#============================================
def main() -> None:
	"""
	Run the golden matrix refresh.
	"""
	repo_root = get_repo_root()
	fixtures_dir = repo_root / "tests" / "fixtures"
	fixtures_dir.mkdir(parents=True, exist_ok=True)
	text = json.dumps(build_matrices(), indent=2, sort_keys=True)
	(fixtures_dir / "golden_qr_matrices.json").write_text(text, encoding="utf-8")
	print("Updated golden QR matrices in tests/fixtures.")


if __name__ == "__main__":
	main()
