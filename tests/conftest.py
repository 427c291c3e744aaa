from pathlib import Path

import pytest


@pytest.fixture
def feature_root(tmp_path: Path) -> Path:
    """Name-and-term listings for two sections, one split across part files."""
    root = tmp_path / "feature-sets"
    user_dir = root / "userFeatures"
    user_dir.mkdir(parents=True)
    (user_dir / "part-00000").write_text("age\t30-40\ncountry\tUS\n", encoding="utf-8")
    (user_dir / "part-00001").write_text("country\tUS\ncountry\tDE\n", encoding="utf-8")
    (user_dir / "_SUCCESS").write_text("", encoding="utf-8")
    (root / "itemFeatures.tsv").write_text("genre\tjazz\ncountry\tUS\nprice\t\n", encoding="utf-8")
    return root
