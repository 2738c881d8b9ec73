"""Command-line entry point for the dungeon master toolkit."""

import argparse
import json
import logging
import sys

from .config import load_config
from .database.session import CampaignStore
from .errors import DungeonMasterError
from .game.dice import DiceRoller
from .logging_setup import configure_logging
from .tools import DungeonMasterTools

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dm-toolkit", description="Tabletop dice and combat tools.")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    roll = sub.add_parser("roll", help="Roll dice notation such as 2d6+3")
    roll.add_argument("notation")
    mode = roll.add_mutually_exclusive_group()
    mode.add_argument("--advantage", action="store_const", const="advantage", dest="advantage")
    mode.add_argument("--disadvantage", action="store_const", const="disadvantage", dest="advantage")
    roll.add_argument("--explode", action="store_true", help="Dice explode on their top face")
    roll.add_argument("--seed", default=None, help="Replay a previous roll")

    sub.add_parser("init-db", help="Create the campaign database")

    export = sub.add_parser("export-log", help="Print a campaign's event log as JSON")
    export.add_argument("campaign_id", type=int)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    configure_logging(config.logging)

    try:
        if args.command == "roll":
            roller = DiceRoller(max_explosions=config.dice.max_explosions)
            result = roller.roll(
                args.notation,
                advantage=args.advantage or config.dice.default_advantage,
                exploding=args.explode,
                seed=args.seed,
            )
            print(json.dumps(result.to_dict(), indent=2))
            return 0

        store = CampaignStore.from_config(config.database)
        try:
            if args.command == "init-db":
                print(json.dumps({"database": str(store.db_path)}))
            elif args.command == "export-log":
                tools = DungeonMasterTools(store, config)
                print(json.dumps(tools.call("export.session_log", campaign_id=args.campaign_id), indent=2))
        finally:
            store.close()
        return 0

    except DungeonMasterError as e:
        print(json.dumps(e.to_dict()))
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
