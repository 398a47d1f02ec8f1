"""Export video sets to Anki packages and CSV."""

import hashlib
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

import genanki
import pandas as pd

from ..config import Config
from ..models import VideoSet
from ..utils.helpers import ensure_dir, get_file_size_mb
from ..utils.logger import setup_logger
from ..utils.parsing import TextParser

logger = setup_logger(__name__)

CSV_COLUMNS = [
    "SetTitle", "Word", "Part_of_Speech", "Level", "Phonetic",
    "Translation", "Example", "Status", "Manual", "CardId", "SetId",
]

FRONT_TEMPLATE = """<div class="card-container">
  <div class="word-main">{{Word}}</div>
  <div class="word-meta">{{Part_of_Speech}} {{Phonetic}}</div>
</div>"""

BACK_TEMPLATE = """{{FrontSide}}
<hr id="answer">
<div class="card-container">
  <div class="definition">{{Translation}}</div>
  <div class="example">{{Example}}</div>
  <div class="source">{{Source}}</div>
</div>"""

CSS = """
.card { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif; font-size: 18px; text-align: center; color: #1e293b; background: #f8fafc; }
.card-container { max-width: 500px; margin: 10px auto; padding: 20px; background: #ffffff; border-radius: 16px; }
.word-main { font-size: 2.2em; font-weight: 800; }
.word-meta { font-size: 0.8em; color: #64748b; font-family: monospace; margin-top: 6px; }
.definition { font-size: 1.2em; font-weight: 600; }
.example { margin-top: 12px; font-style: italic; color: #475569; }
.source { margin-top: 12px; font-size: 0.7em; color: #94a3b8; }
"""


def stable_id(text: str, digits: int = 9) -> int:
    """Deterministic numeric id (Python's hash() varies between sessions)."""
    return int(hashlib.md5(text.encode()).hexdigest()[:8], 16) % (10 ** digits)


class AnkiExporter:
    """
    Build .apkg packages from video sets.

    Each set becomes a subdeck under Config.DECK_NAME; notes use the card id
    as guid, so re-exporting updates existing notes instead of duplicating.
    """

    def __init__(self, deck_name: str = Config.DECK_NAME, model_id: int = Config.MODEL_ID):
        self.deck_name = deck_name
        self.model = genanki.Model(
            model_id,
            "VocabMaster Card",
            fields=[
                {"name": "Word"}, {"name": "Part_of_Speech"}, {"name": "Phonetic"},
                {"name": "Translation"}, {"name": "Example"}, {"name": "Source"},
                {"name": "CardId"},
            ],
            templates=[{"name": "Recognition", "qfmt": FRONT_TEMPLATE, "afmt": BACK_TEMPLATE}],
            css=CSS,
        )

    def build_deck(self, video_set: VideoSet) -> genanki.Deck:
        """Create the subdeck for one set."""
        deck = genanki.Deck(
            Config.DECK_ID + stable_id(video_set.id, digits=6),
            f"{self.deck_name}::{video_set.title}",
        )
        source = f'<a href="{video_set.url}">{video_set.title}</a>' if video_set.url else video_set.title

        for card in video_set.cards:
            descriptor = card.part_of_speech or card.level or ""
            tags = [card.status.value] + (["manual"] if card.manual else [])
            note = genanki.Note(
                model=self.model,
                fields=[
                    TextParser.normalize_unicode(card.word),
                    descriptor,
                    card.phonetic or "",
                    TextParser.to_html_lines(card.translation),
                    TextParser.to_html_lines(card.example),
                    source,
                    card.id,
                ],
                tags=tags,
                guid=genanki.guid_for(video_set.id, card.id),
            )
            deck.add_note(note)

        return deck

    def export(self, video_sets: Iterable[VideoSet], output_file: Optional[str] = None) -> str:
        """
        Write an .apkg file.

        Args:
            video_sets: Sets to include
            output_file: Output path (defaults to data/output/vocabmaster.apkg)

        Returns:
            Path of the written file
        """
        if output_file is None:
            output_file = os.path.join(Config.OUTPUT_DIR, "vocabmaster.apkg")
        ensure_dir(os.path.dirname(os.path.abspath(output_file)))

        decks: List[genanki.Deck] = [self.build_deck(s) for s in video_sets]

        # Backup old file
        if os.path.exists(output_file):
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            output_path = Path(output_file)
            backup_file = str(output_path.with_name(f"{output_path.stem}_{timestamp}.apkg"))
            os.rename(output_file, backup_file)
            logger.info("Backup created: %s", backup_file)

        genanki.Package(decks).write_to_file(output_file)

        note_count = sum(len(deck.notes) for deck in decks)
        logger.info(
            "Exported %d notes in %d decks to %s (%.2f MB)",
            note_count, len(decks), output_file, get_file_size_mb(output_file)
        )
        return output_file


def cards_dataframe(video_sets: Iterable[VideoSet]) -> pd.DataFrame:
    """Flatten all cards of the given sets into one table."""
    rows = []
    for video_set in video_sets:
        for card in video_set.cards:
            rows.append({
                "SetTitle": video_set.title,
                "Word": card.word,
                "Part_of_Speech": card.part_of_speech or "",
                "Level": card.level or "",
                "Phonetic": card.phonetic or "",
                "Translation": card.translation,
                "Example": card.example,
                "Status": card.status.value,
                "Manual": card.manual,
                "CardId": card.id,
                "SetId": video_set.id,
            })
    return pd.DataFrame(rows, columns=CSV_COLUMNS)


def export_csv(video_sets: Iterable[VideoSet], csv_path: str) -> int:
    """
    Write cards as a pipe-delimited CSV.

    Returns:
        Number of rows written
    """
    df = cards_dataframe(video_sets)
    ensure_dir(os.path.dirname(os.path.abspath(csv_path)))
    df.to_csv(csv_path, sep='|', index=False, encoding='utf-8-sig')
    logger.info("Exported %d cards to %s", len(df), csv_path)
    return len(df)
