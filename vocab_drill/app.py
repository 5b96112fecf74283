"""Main application entry point."""

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

from vocab_drill.config import Settings, load_settings
from vocab_drill.core.models import Category, VocabularyItem
from vocab_drill.core.progress import ProgressTracker
from vocab_drill.core.queue import QueueEngine
from vocab_drill.core.repository import RepositoryError
from vocab_drill.core.session import LearningSession, SubmitStatus
from vocab_drill.storage.database import Database
from vocab_drill.storage.files import WordPackStorage


logger = logging.getLogger("vocab_drill")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

HELP_TEXT = """Commands:
  :next            move to the next word
  :skip            skip the current word
  :category NAME   switch category (GENERAL, TOEIC, VSTEP, SPEAKING, WRITING)
  :status          show progress
  :quit            leave"""


def setup_logging(settings: Settings) -> None:
    """Configure the package logger, adding a rotating file when configured."""
    logger.setLevel(settings.logging.level)
    if logger.handlers:
        return

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console)

    if settings.logging.file:
        log_path = Path(settings.logging.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)


def create_session(settings: Settings, database: Database) -> LearningSession:
    """Wire the queue engine and tracker to a database."""
    learning = settings.learning
    engine = QueueEngine(
        database,
        queue_size=learning.queue_size,
        half_life_days=learning.half_life_days,
        review_ratio=learning.review_ratio,
        mastery_rule=learning.mastery_rule,
        tie_break=learning.tie_break,
        replacement_candidates=learning.replacement_candidates,
    )
    tracker = ProgressTracker(minutes_per_word=learning.minutes_per_word)
    return LearningSession(database, engine, tracker)


def format_summary(session: LearningSession) -> str:
    summary = session.progress_summary()
    return (
        f"Words learned: {summary.words_learned} / goal {summary.goal} "
        f"(debt {summary.debt}, {summary.progress_percentage}%) "
        f"level {summary.level}, elapsed {summary.elapsed_time}"
    )


def format_item(item: VocabularyItem) -> str:
    line = f"{item.word} [{item.category.value}] {item.correct_attempts}/{item.total_attempts}"
    prompts = [e.vietnamese for e in item.examples if e.vietnamese]
    if prompts:
        line += f" - {'; '.join(prompts)}"
    return line


def edit_word(database: Database, args: argparse.Namespace) -> int:
    """Apply the `edit` subcommand. Returns the exit code."""
    item = database.get_vocabulary_by_word(args.word)
    if item is None:
        print(f"No such word: {args.word}")
        return 1
    category = Category.from_string(args.category) if args.category else item.category
    grammar = args.grammar if args.grammar is not None else item.grammar
    try:
        database.update_vocabulary(item.id, args.new_word or item.word, category, grammar)
    except ValueError as e:
        print(f"Not updated: {e}")
        return 1
    print(format_item(database.get_item_by_id(item.id)))
    return 0


def run_practice(
    session: LearningSession,
    category: Category,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> None:
    """Line-based drill loop."""
    session.start(category)
    write(HELP_TEXT)

    while True:
        prompt = session.current_prompt()
        if prompt is None:
            if session.current() is None:
                write(f"Nothing to study in {session.category.value}.")
            else:
                session.advance()
                continue
        else:
            write("")
            write(f"[{prompt.item.word}] {prompt.completed + 1}/{prompt.total}")
            write(f"  {prompt.text or '(no prompt)'}")
            if prompt.grammar:
                write(f"  Grammar: {prompt.grammar}")

        try:
            line = read("> ")
        except EOFError:
            break
        command = line.strip()

        if command in (":quit", ":q"):
            break
        if command == ":next":
            session.advance()
            continue
        if command == ":skip":
            session.skip()
            continue
        if command == ":status":
            write(format_summary(session))
            continue
        if command.startswith(":category"):
            name = command[len(":category"):].strip()
            session.switch_category(Category.from_string(name))
            write(f"Category: {session.category.value}")
            continue
        if command.startswith(":"):
            write(HELP_TEXT)
            continue

        result = session.submit_answer(line)
        if result.status is SubmitStatus.CORRECT:
            write(result.message)
            for note in result.notes:
                write(f"  {note}")
            for warning in result.warnings:
                write(warning)
            if result.item_completed and not result.replacement:
                session.advance()
        elif result.status is SubmitStatus.INCORRECT:
            write("Almost! Check your spelling." if result.near_miss else "Not quite.")
            if result.comparison:
                write(f"  You wrote: {result.comparison.highlighted_user_answer}")
            if result.correct_answer:
                write(f"  Expected:  {result.correct_answer}")
            if result.message:
                write(result.message)
        elif result.status is SubmitStatus.ITEM_COMPLETE:
            session.advance()
        else:
            write(result.message)

    write(format_summary(session))


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point."""
    parser = argparse.ArgumentParser(description="Vocabulary translation drill")
    parser.add_argument(
        "-c", "--config",
        help="Path to config file",
        default=None,
    )
    subparsers = parser.add_subparsers(dest="command")

    practice = subparsers.add_parser("practice", help="Start a drill session")
    practice.add_argument(
        "--category",
        default=Category.GENERAL.value,
        help="Category to study",
    )
    subparsers.add_parser("status", help="Show learning progress")
    import_parser = subparsers.add_parser("import", help="Import JSON word packs")
    import_parser.add_argument("directory", nargs="?", help="Directory of packs")
    subparsers.add_parser("cleanup", help="Remove duplicate words")

    search = subparsers.add_parser("search", help="Find words")
    search.add_argument("query", help="Text to look for")
    search.add_argument("--category", help="Only search this category")
    search.add_argument("--limit", type=int, default=20, help="Maximum results")

    edit = subparsers.add_parser("edit", help="Change a stored word")
    edit.add_argument("word", help="Word to change")
    edit.add_argument("--word", dest="new_word", help="New spelling")
    edit.add_argument("--category", help="New category")
    edit.add_argument("--grammar", help="New grammar note")

    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ValueError as e:
        parser.error(str(e))
    setup_logging(settings)

    try:
        database = Database(settings.data.database_path)

        if args.command == "import":
            directory = args.directory or settings.data.packs_path
            added = WordPackStorage(directory).import_into(database)
            print(f"Imported {added} words")
        elif args.command == "cleanup":
            removed = database.cleanup_duplicates()
            print(f"Removed {removed} duplicates")
        elif args.command == "status":
            session = create_session(settings, database)
            print(format_summary(session))
            stats = database.get_category_stats(settings.learning.mastery_rule)
            for name, counts in stats.items():
                print(
                    f"  {name}: {counts['total']} words, "
                    f"{counts['studied']} studied, {counts['mastered']} mastered"
                )
        elif args.command == "search":
            category = Category.from_string(args.category) if args.category else None
            for item in database.search_vocabularies(args.query, category, args.limit):
                print(format_item(item))
        elif args.command == "edit":
            return edit_word(database, args)
        else:
            category = Category.from_string(getattr(args, "category", None))
            run_practice(create_session(settings, database), category)
    except RepositoryError as e:
        logger.error("Storage failure: %s", e)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
