import glob
import logging
import os
from typing import Any, Dict, List, Optional

import pandas as pd

from .models import Passage

logger = logging.getLogger(__name__)

DUMMY_PASSAGE = Passage(
    id="default_dummy",
    title="The Road Not Taken (excerpt)",
    text=(
        "Two roads diverged in a yellow wood, and sorry I could not travel both "
        "and be one traveler, long I stood and looked down one as far as I could "
        "to where it bent in the undergrowth.\n\n"
        "Then took the other, as just as fair, and having perhaps the better claim, "
        "because it was grassy and wanted wear."
    ),
)


# --- Service Layer: Passage Management ---
class PassageLibrary:
    """Loads memorization passages from CSV and plain text files."""

    def __init__(self, directory: str):
        self.directory = directory
        self.passages: Dict[str, Passage] = {}
        self.load_all()

    def load_all(self):
        self.passages = {}
        if not os.path.exists(self.directory):
            os.makedirs(self.directory)
            logger.warning(f"Created directory {self.directory}. Please add passages.")
        else:
            self._load_csv_files()
            self._load_text_files()

        if not self.passages:
            logger.warning("No passages found. Loading dummy data.")
            self.passages[DUMMY_PASSAGE.id] = DUMMY_PASSAGE

    def _load_csv_files(self):
        for file_path in glob.glob(os.path.join(self.directory, "*.csv")):
            file_name = os.path.splitext(os.path.basename(file_path))[0]
            try:
                df = pd.read_csv(file_path, encoding="utf-8")
            except Exception as e:
                logger.error(f"Failed to load {file_path}: {e}")
                continue

            if "text" not in df.columns:
                logger.error(f"Skipping {file_name}: Missing 'text' column.")
                continue

            df = df.dropna(subset=["text"])
            for row_number, row in enumerate(df.to_dict("records"), start=1):
                raw_id = row.get("id")
                if pd.notna(raw_id) and str(raw_id).strip():
                    passage_id = str(raw_id).strip()
                else:
                    passage_id = f"{file_name}_{row_number}"
                title = row.get("title")
                if not isinstance(title, str) or not title.strip():
                    title = f"{file_name.replace('_', ' ').title()} {row_number}"
                self.passages[passage_id] = Passage(
                    id=passage_id, title=title, text=str(row["text"])
                )
            logger.info(f"Loaded {len(df)} passages from {file_name}")

    def _load_text_files(self):
        for file_path in glob.glob(os.path.join(self.directory, "*.txt")):
            file_name = os.path.splitext(os.path.basename(file_path))[0]
            try:
                with open(file_path, encoding="utf-8") as f:
                    text = f.read()
            except OSError as e:
                logger.error(f"Failed to load {file_path}: {e}")
                continue
            if not text.strip():
                logger.warning(f"Skipping {file_name}: empty file.")
                continue
            self.passages[file_name] = Passage(
                id=file_name, title=file_name.replace("_", " ").title(), text=text
            )
            logger.info(f"Loaded passage {file_name}")

    def get_passage(self, passage_id: str) -> Optional[Passage]:
        return self.passages.get(passage_id)

    def get_passages(self) -> List[Dict[str, Any]]:
        passages = [
            {"id": p.id, "title": p.title, "word_count": len(p.text.split())}
            for p in self.passages.values()
        ]
        passages.sort(key=lambda x: x["title"])
        return passages
