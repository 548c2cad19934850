#!/usr/bin/env python3
"""
rePINGO - Game Library & Random Picker
Keep a shared list of games to play, mark them played, and let a random spin
decide what the group plays next.
"""

import argparse
import json
import logging
import os
import sys
from typing import Dict, List, Optional

from colorama import init, Fore, Style
from dotenv import load_dotenv

from app.errors import EntryNotFoundError, RepingoError
from app.models import DEFAULT_MAX_PLAYERS, EntryForm, LibraryEntry
from app.repositories import KeyValueStore, LibraryRepository, STORAGE_KEY
from app.services import LibraryService
from app.services.transfer_service import DEFAULT_APP_NAME

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root rePINGO logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, str(level).upper(), logging.WARNING)
    logger = logging.getLogger('repingo')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging()

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: Dict = {
    'data_file': '.repingo_store.json',
    'log_level': 'WARNING',
    'app_name': DEFAULT_APP_NAME,
    'exclude_played_from_spin': False,
}


def load_config(config_path: str = 'config.json') -> Dict:
    """Load configuration from an optional JSON file with environment overrides.

    A missing file means "use the defaults".  Environment variables (also read
    from a ``.env`` file) take precedence over file values:

    - REPINGO_DATA_FILE overrides data_file
    - REPINGO_LOG_LEVEL overrides log_level
    """
    load_dotenv()
    config = dict(DEFAULT_CONFIG)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                config.update(loaded)
            else:
                logger.warning("Ignoring %s: expected a JSON object", config_path)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read config file %s: %s", config_path, e)

    if os.getenv('REPINGO_DATA_FILE'):
        config['data_file'] = os.getenv('REPINGO_DATA_FILE')
    if os.getenv('REPINGO_LOG_LEVEL'):
        config['log_level'] = os.getenv('REPINGO_LOG_LEVEL')

    return config


def build_library(config: Dict) -> LibraryService:
    """Create the store, repository and controller described by *config*."""
    setup_logging(config.get('log_level', 'WARNING'))
    store = KeyValueStore(config.get('data_file', DEFAULT_CONFIG['data_file']))
    repository = LibraryRepository(store, key=STORAGE_KEY)
    return LibraryService(
        repository,
        exclude_played_from_spin=bool(config.get('exclude_played_from_spin', False)),
        app_name=config.get('app_name', DEFAULT_APP_NAME),
    )


def entry_at_position(library: LibraryService, ref: str) -> LibraryEntry:
    """Return the entry at 1-based position *ref* in the displayed list.

    Ids are not accepted here; the command-line flags take ids.

    Raises:
        EntryNotFoundError: if *ref* is not a position in the list.
    """
    ref = (ref or '').strip()
    ordered = library.ordered()
    if ref.isdigit() and 1 <= int(ref) <= len(ordered):
        return ordered[int(ref) - 1]
    raise EntryNotFoundError(ref, f"No game at position {ref!r}")


class GameLibraryCLI:
    """Terminal front end for a :class:`LibraryService`."""

    def __init__(self, library: LibraryService):
        self.library = library

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def display_entry(self, entry: LibraryEntry, heading: Optional[str] = None):
        """Display every field of an entry"""
        print(f"\n{Fore.GREEN}{'='*60}")
        if heading:
            print(f"{Fore.MAGENTA}{heading}")
        print(f"{Fore.CYAN}{Style.BRIGHT}🎮 {entry.name}")
        if entry.played:
            print(f"{Fore.YELLOW}✔ PLAYED")
        print(f"{Fore.GREEN}{'='*60}")
        print(f"{Fore.YELLOW}ID: {Fore.WHITE}{entry.id}")
        print(f"{Fore.YELLOW}Description: {Fore.WHITE}{entry.description}")
        print(f"{Fore.YELLOW}Players: {Fore.WHITE}{entry.max_players}")
        print(f"{Fore.YELLOW}Available on Hydra: {Fore.WHITE}"
              f"{'yes' if entry.available_on_hydra else 'no'}")
        if entry.image_url:
            print(f"{Fore.YELLOW}Image: {Fore.WHITE}{entry.image_url}")
        print(f"{Fore.YELLOW}Added by: {Fore.WHITE}{entry.added_by}")
        print(f"{Fore.GREEN}{'='*60}\n")

    def list_games(self):
        """Print the library in display order"""
        ordered = self.library.ordered()
        if not ordered:
            print(f"{Fore.YELLOW}The library is empty. Add a game first!")
            return
        selected_id = self.library.selected_id
        print(f"\n{Fore.CYAN}{Style.BRIGHT}Game Library ({len(ordered)} games)")
        print(f"{Fore.WHITE}{'='*60}")
        for position, entry in enumerate(ordered, 1):
            marker = f"{Fore.MAGENTA}★ " if entry.id == selected_id else '  '
            status = f"{Fore.GREEN}[played]" if entry.played else f"{Fore.CYAN}[to play]"
            hydra = f" {Fore.BLUE}(Hydra)" if entry.available_on_hydra else ''
            print(f"{marker}{Fore.YELLOW}{position:>3}. {Fore.WHITE}{entry.name} "
                  f"{status}{hydra} {Fore.WHITE}- up to {entry.max_players} players, "
                  f"added by {entry.added_by}")
        print(f"{Fore.WHITE}{'='*60}")

    def show_stats(self):
        """Display library statistics"""
        stats = self.library.stats()
        print(f"\n{Fore.CYAN}{Style.BRIGHT}📊 Library Statistics")
        print(f"{Fore.WHITE}{'='*40}")
        print(f"{Fore.YELLOW}Total games: {Fore.WHITE}{stats['total']}")
        print(f"{Fore.YELLOW}Still to play: {Fore.WHITE}{stats['unplayed']}")
        print(f"{Fore.YELLOW}Already played: {Fore.WHITE}{stats['played']}")
        selected = self.library.selected
        if selected:
            print(f"{Fore.YELLOW}Current pick: {Fore.WHITE}{selected.name}")
        print(f"{Fore.WHITE}{'='*40}")

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def spin(self, exclude_played: Optional[bool] = None) -> LibraryEntry:
        """Spin the wheel and show the winner.

        Raises:
            EmptyPoolError: if there is nothing to pick from.
        """
        pool = self.library.start_spin(exclude_played)
        print(f"{Fore.CYAN}Spinning over {len(pool)} games...")
        winner = self.library.finish_spin()
        self.display_entry(winner, heading="🎲 Game of the round")
        return winner

    def prompt_form(self, defaults: Optional[EntryForm] = None) -> EntryForm:
        """Ask for each form field; empty input keeps the default"""
        defaults = defaults or EntryForm()

        def ask(label: str, current: str) -> str:
            suffix = f" [{current}]" if current else ''
            value = input(f"{Fore.GREEN}{label}{suffix}: {Fore.WHITE}").strip()
            return value or current

        def ask_bool(label: str, current: bool) -> bool:
            value = input(f"{Fore.GREEN}{label} (y/n) [{'y' if current else 'n'}]: "
                          f"{Fore.WHITE}").strip().lower()
            return current if not value else value == 'y'

        return EntryForm(
            name=ask("Name", defaults.name),
            description=ask("Description", defaults.description),
            max_players=ask("Max players", str(defaults.max_players)),
            available_on_hydra=ask_bool("Available on Hydra?", defaults.available_on_hydra),
            image_url=ask("Image URL", defaults.image_url),
            added_by=ask("Added by", defaults.added_by),
            played=ask_bool("Already played?", defaults.played),
        )

    def add_interactive(self):
        entry = self.library.add(self.prompt_form())
        print(f"{Fore.GREEN}Added {entry.name}!")

    def edit_interactive(self):
        ref = input(f"{Fore.GREEN}Number of the game to edit: {Fore.WHITE}")
        entry = entry_at_position(self.library, ref)
        form = self.library.begin_edit(entry.id)
        try:
            updated = self.library.edit(entry.id, self.prompt_form(form))
        finally:
            self.library.cancel_edit()
        print(f"{Fore.GREEN}Updated {updated.name}!")

    def toggle_interactive(self):
        ref = input(f"{Fore.GREEN}Number of the game to toggle: {Fore.WHITE}")
        entry = self.library.toggle_played(entry_at_position(self.library, ref).id)
        state = 'played' if entry.played else 'not played'
        print(f"{Fore.GREEN}{entry.name} marked as {state}.")

    def delete_interactive(self):
        ref = input(f"{Fore.GREEN}Number of the game to delete: {Fore.WHITE}")
        entry = self.library.request_delete(entry_at_position(self.library, ref).id)
        choice = input(f"{Fore.RED}Delete {entry.name}? This cannot be undone (y/n): "
                       f"{Fore.WHITE}").strip().lower()
        if choice == 'y':
            self.library.confirm_delete()
            print(f"{Fore.GREEN}Deleted {entry.name}.")
        else:
            self.library.cancel_delete()
            print(f"{Fore.YELLOW}Kept {entry.name}.")

    def view_interactive(self):
        ref = input(f"{Fore.GREEN}Number of the game to view: {Fore.WHITE}")
        entry = self.library.view(entry_at_position(self.library, ref).id)
        self.display_entry(entry)
        self.library.close_view()

    def export_games(self, filepath: Optional[str] = None):
        path = self.library.export_to(filepath)
        print(f"{Fore.GREEN}Exported {len(self.library.entries)} games to {path}")

    def import_games(self, filepath: str):
        count = self.library.import_from(filepath)
        print(f"{Fore.GREEN}{count} games imported successfully!")

    def export_import_menu(self):
        """Export/Import menu"""
        while True:
            print(f"\n{Fore.CYAN}{Style.BRIGHT}Export/Import")
            print(f"{Fore.WHITE}{'='*40}")
            print(f"{Fore.YELLOW}1. {Fore.WHITE}Export games")
            print(f"{Fore.YELLOW}2. {Fore.WHITE}Import games (replaces the library)")
            print(f"{Fore.YELLOW}b. {Fore.WHITE}Back to main menu")
            print(f"{Fore.WHITE}{'='*40}")

            choice = input(f"\n{Fore.GREEN}Enter your choice: {Fore.WHITE}").strip().lower()

            if choice == 'b':
                break
            elif choice == '1':
                default_name = self.library.default_export_filename()
                filepath = input(f"{Fore.GREEN}Export file path (default: {default_name}): "
                                 f"{Fore.WHITE}").strip()
                try:
                    self.export_games(filepath or None)
                except OSError as e:
                    print(f"{Fore.RED}Error exporting games: {e}")
            elif choice == '2':
                filepath = input(f"{Fore.GREEN}Import file path: {Fore.WHITE}").strip()
                if not filepath:
                    print(f"{Fore.YELLOW}No file path specified.")
                    continue
                try:
                    self.import_games(filepath)
                except RepingoError as e:
                    print(f"{Fore.RED}Error importing games: {e}")
            else:
                print(f"{Fore.RED}Invalid choice.")

    def interactive_mode(self):
        """Run in interactive mode"""
        actions = {
            '1': self.spin,
            '2': self.list_games,
            '3': self.add_interactive,
            '4': self.edit_interactive,
            '5': self.toggle_interactive,
            '6': self.delete_interactive,
            '7': self.view_interactive,
            '8': self.show_stats,
            '9': self.export_import_menu,
        }
        while True:
            print(f"\n{Fore.CYAN}{Style.BRIGHT}rePINGO - Game Library")
            print(f"{Fore.WHITE}{'='*40}")
            print(f"{Fore.YELLOW}1. {Fore.WHITE}Spin for a game")
            print(f"{Fore.YELLOW}2. {Fore.WHITE}List games")
            print(f"{Fore.YELLOW}3. {Fore.WHITE}Add a game")
            print(f"{Fore.YELLOW}4. {Fore.WHITE}Edit a game")
            print(f"{Fore.YELLOW}5. {Fore.WHITE}Mark played / not played")
            print(f"{Fore.YELLOW}6. {Fore.WHITE}Delete a game")
            print(f"{Fore.YELLOW}7. {Fore.WHITE}View game details")
            print(f"{Fore.YELLOW}8. {Fore.WHITE}Show library stats")
            print(f"{Fore.YELLOW}9. {Fore.WHITE}Export/Import games")
            print(f"{Fore.YELLOW}q. {Fore.WHITE}Quit")
            print(f"{Fore.WHITE}{'='*40}")

            choice = input(f"\n{Fore.GREEN}Enter your choice: {Fore.WHITE}").strip().lower()

            if choice == 'q':
                print(f"\n{Fore.CYAN}Thanks for using rePINGO! Happy gaming! 🎮")
                break
            action = actions.get(choice)
            if action is None:
                print(f"{Fore.RED}Invalid choice. Please try again.")
                continue
            try:
                action()
            except RepingoError as e:
                print(f"{Fore.RED}{e}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='rePINGO - Game Library & Random Picker',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 repingo.py                       # Run in interactive mode
  python3 repingo.py --spin                # Spin for a game and exit
  python3 repingo.py --spin --unplayed-only
  python3 repingo.py --list                # Show the library
  python3 repingo.py --add "Portal 2" --description "Co-op puzzles" --added-by Ana
  python3 repingo.py --export              # Export to repingo-games-<date>.json
        """
    )

    parser.add_argument('--config', '-c', default='config.json',
                        help='Path to config file (default: config.json)')
    parser.add_argument('--list', '-l', action='store_true',
                        help='List the library in display order and exit')
    parser.add_argument('--spin', '-s', action='store_true',
                        help='Pick a random game and exit')
    parser.add_argument('--unplayed-only', '-u', action='store_true',
                        help='Only spin over games not yet played')
    parser.add_argument('--stats', action='store_true',
                        help='Show library statistics and exit')
    parser.add_argument('--show', metavar='ID', help='Show one game and exit')
    parser.add_argument('--add', metavar='NAME', help='Add a game with this name')
    parser.add_argument('--description', default='', help='Description for --add')
    parser.add_argument('--added-by', default='', help='Who is adding the game (--add)')
    parser.add_argument('--max-players', default=str(DEFAULT_MAX_PLAYERS),
                        help=f'Maximum players for --add (default: {DEFAULT_MAX_PLAYERS})')
    parser.add_argument('--hydra', action='store_true',
                        help='Mark the game added with --add as available on Hydra')
    parser.add_argument('--image-url', default='', help='Image URL for --add')
    parser.add_argument('--played', action='store_true',
                        help='Mark the game added with --add as already played')
    parser.add_argument('--toggle', metavar='ID', help='Flip the played flag of a game')
    parser.add_argument('--delete', metavar='ID', help='Delete a game')
    parser.add_argument('--export', nargs='?', const='', metavar='FILE',
                        help='Export the library (default name: <app-name>-<date>.json)')
    parser.add_argument('--import', dest='import_file', metavar='FILE',
                        help='Replace the library with the games in FILE')

    args = parser.parse_args(argv)

    try:
        cli = GameLibraryCLI(build_library(load_config(args.config)))

        if args.add is not None:
            entry = cli.library.add(EntryForm(
                name=args.add,
                description=args.description,
                added_by=args.added_by,
                max_players=args.max_players,
                available_on_hydra=args.hydra,
                image_url=args.image_url,
                played=args.played,
            ))
            print(f"{Fore.GREEN}Added {entry.name} ({entry.id})")
        elif args.toggle:
            entry = cli.library.toggle_played(args.toggle)
            print(f"{Fore.GREEN}{entry.name} marked as {'played' if entry.played else 'not played'}.")
        elif args.delete:
            entry = cli.library.delete(args.delete)
            print(f"{Fore.GREEN}Deleted {entry.name}.")
        elif args.show:
            cli.display_entry(cli.library.get(args.show))
        elif args.export is not None:
            cli.export_games(args.export or None)
        elif args.import_file:
            cli.import_games(args.import_file)
        elif args.stats:
            cli.show_stats()
        elif args.list:
            cli.list_games()
        elif args.spin:
            cli.spin(exclude_played=True if args.unplayed_only else None)
        else:
            cli.interactive_mode()
    except RepingoError as e:
        print(f"{Fore.RED}Error: {e}")
        return 1
    except OSError as e:
        print(f"{Fore.RED}File error: {e}")
        return 1
    except KeyboardInterrupt:
        print(f"\n\n{Fore.YELLOW}Interrupted by user. Goodbye!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
