"""
VocabMaster: Video Vocabulary Flashcards
----------------------------------------

Command line entry point: extract vocabulary from a video, review the cards,
and manage the stored sets.
"""

import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

from vocabmaster.config import Config, SettingsManager
from vocabmaster.deck import AnkiExporter, export_csv
from vocabmaster.errors import EmptyQueue, VocabMasterError
from vocabmaster.models import CardStatus
from vocabmaster.services import (
    CredentialStore,
    FileBlobStorage,
    ReviewMode,
    SessionState,
    VocabularyService,
)
from vocabmaster.utils import mask_secret


def _print_retry(event) -> None:
    print(f"[*] Rate limited, retry {event.attempt} in {event.delay:.0f}s...")


async def cmd_extract(service: VocabularyService, args) -> bool:
    service.orchestrator.on_retry(_print_retry)
    transcript = Path(args.transcript).read_text(encoding="utf-8") if args.transcript else None

    video_set = await service.process_video(args.url, transcript=transcript)

    print(f"[OK] {video_set.title}")
    print(f"     {len(video_set.cards)} words, set id: {video_set.id}")
    for card in video_set.cards:
        print(f"  - {card.word} ({card.part_of_speech or card.level or '-'}): {card.translation}")
    for source in video_set.sources:
        print(f"  [source] {source.title} <{source.url}>")
    return True


def cmd_list(service: VocabularyService, args) -> bool:
    sets = service.store.sets
    print(f"My vocabulary sets ({len(sets)})")
    for video_set in sets:
        created = datetime.fromtimestamp(video_set.created_at / 1000).strftime("%Y-%m-%d")
        print(f"  {video_set.id}  {created}  {len(video_set.cards):3d} words  "
              f"learned: {video_set.learned_count}  {video_set.title}")
    stats = service.store.get_statistics()
    print(f"Total: {stats['total_cards']} cards, {stats['learned']} learned")
    return True


def cmd_review(service: VocabularyService, args) -> bool:
    session = service.new_review_session()
    mode = ReviewMode.LEARNING_ONLY if args.learning_only else ReviewMode.ALL
    try:
        session.start(args.set_id, mode)
    except EmptyQueue:
        print("[!] No words to review!")
        return False

    print("Swipe: [k] know it (learned)  [l] still learning  [q] quit")
    while session.state == SessionState.REVIEWING:
        card = session.current_card
        position, total = session.progress
        input(f"\n{position}/{total}  {card.word}  ({card.part_of_speech or card.level or ''})  [enter to flip]")
        print(f"  {card.translation}")
        print(f"  {card.example}")

        answer = ""
        while answer not in ("k", "l", "q"):
            answer = input("  > ").strip().lower()
        if answer == "q":
            session.reset()
            print("[!] Review cancelled.")
            return True
        session.record_outcome(CardStatus.LEARNED if answer == "k" else CardStatus.LEARNING)

    summary = session.summary()
    print(f"\nPractice complete! learned: {summary['learned']}, still learning: {summary['learning']}")
    return True


def cmd_add(service: VocabularyService, args) -> bool:
    card = service.store.add_manual_card(args.set_id, {
        "word": args.word,
        "translation": args.translation,
        "partOfSpeech": args.pos,
        "example": args.example,
    })
    if card is None:
        print("[!] Card not added: unknown set or empty word/translation.")
        return False
    print(f"[OK] Added {card.word} ({card.id})")
    return True


def cmd_delete(service: VocabularyService, args) -> bool:
    if not args.yes and input(f"Delete set {args.set_id}? [y/N] ").strip().lower() != "y":
        return False
    removed = service.store.delete_set(args.set_id)
    print("[OK] Deleted." if removed else "[*] Nothing to delete.")
    return True


def cmd_import(service: VocabularyService, args) -> bool:
    added = service.store.import_json(Path(args.file).read_text(encoding="utf-8"))
    print(f"[OK] Imported {added} new sets.")
    return True


def cmd_export(service: VocabularyService, args) -> bool:
    Path(args.file).write_text(service.store.export_json(), encoding="utf-8")
    print(f"[OK] Exported {service.store.count} sets to {args.file}")
    return True


def _selected_sets(service: VocabularyService, set_ids):
    if not set_ids:
        return service.store.sets
    return [s for s in service.store.sets if s.id in set_ids]


def cmd_anki(service: VocabularyService, args) -> bool:
    path = AnkiExporter().export(_selected_sets(service, args.set_ids), args.output)
    print(f"[OK] Anki package written: {path}")
    return True


def cmd_csv(service: VocabularyService, args) -> bool:
    rows = export_csv(_selected_sets(service, args.set_ids), args.output)
    print(f"[OK] {rows} cards written to {args.output}")
    return True


def cmd_set_key(credentials: CredentialStore, args) -> bool:
    if args.transcript:
        ok = credentials.set_transcript_key(args.key)
    else:
        ok = credentials.set_api_key(args.key)
    print(f"[OK] Key saved: {mask_secret(args.key)}" if ok else "[!] Please enter a valid API key.")
    return ok


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="VocabMaster - video vocabulary flashcards")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("extract", help="Extract vocabulary from a video URL")
    p.add_argument("url")
    p.add_argument("--transcript", help="Path to a transcript text file")

    sub.add_parser("list", help="List stored sets")

    p = sub.add_parser("review", help="Review a set")
    p.add_argument("set_id")
    p.add_argument("--learning-only", action="store_true", help="Skip learned cards")

    p = sub.add_parser("add", help="Add a card manually")
    p.add_argument("set_id")
    p.add_argument("word")
    p.add_argument("translation")
    p.add_argument("--pos", default="n.")
    p.add_argument("--example", default="")

    p = sub.add_parser("delete", help="Delete a set")
    p.add_argument("set_id")
    p.add_argument("-y", "--yes", action="store_true")

    p = sub.add_parser("import", help="Merge sets from a JSON backup")
    p.add_argument("file")

    p = sub.add_parser("export", help="Write all sets to a JSON backup")
    p.add_argument("file")

    p = sub.add_parser("anki", help="Export sets to an Anki package")
    p.add_argument("set_ids", nargs="*")
    p.add_argument("-o", "--output", default=str(Path(Config.OUTPUT_DIR) / "vocabmaster.apkg"))

    p = sub.add_parser("csv", help="Export cards to CSV")
    p.add_argument("set_ids", nargs="*")
    p.add_argument("-o", "--output", default=str(Path(Config.OUTPUT_DIR) / "vocabulary.csv"))

    p = sub.add_parser("set-key", help="Store an API key")
    p.add_argument("key")
    p.add_argument("--transcript", action="store_true", help="Key for the transcript provider")

    return parser


COMMANDS = {
    "list": cmd_list,
    "review": cmd_review,
    "add": cmd_add,
    "delete": cmd_delete,
    "import": cmd_import,
    "export": cmd_export,
    "anki": cmd_anki,
    "csv": cmd_csv,
}


async def main(argv=None) -> bool:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = SettingsManager()
    storage = FileBlobStorage(settings.get("DATA_DIR", Config.DATA_DIR))

    if args.command == "set-key":
        return cmd_set_key(CredentialStore(storage), args)

    async with VocabularyService.from_settings(settings, storage) as service:
        try:
            if args.command == "extract":
                return await cmd_extract(service, args)
            return COMMANDS[args.command](service, args)
        except VocabMasterError as e:
            print(f"[ERROR] {e}")
            return False
        except KeyboardInterrupt:
            print("\n[!] Interrupted by user.")
            return False
        except Exception as e:
            import traceback
            print(f"[ERROR] Fatal error: {e}")
            traceback.print_exc()
            return False


def run() -> None:
    try:
        success = asyncio.run(main())
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n[!] Aborted by user.")
        sys.exit(1)


if __name__ == "__main__":
    run()
