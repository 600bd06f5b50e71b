#!/usr/bin/env python3
"""
Command-line interface for app-fair-browser.
"""

import argparse
import json
import logging
import sys
from typing import Optional

from .app import AppEnv, create_app_env, render_app_info
from .settings import DEFAULT_SETTINGS, SettingsError, get_settings_store
from .sidebar import SidebarCategory, apps_in_category, mark_favorite, share, submit_search_query


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="app-fair-browser",
        description="Browse the app releases, forks and workflow runs of an App Fair hub"
    )
    parser.add_argument("--db", help="Settings database path (default: $APP_FAIR_DB_PATH or app_fair.db)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    categories = [category.value for category in SidebarCategory if category is not SidebarCategory.BUILDS]
    apps_parser = subparsers.add_parser("apps", help="List app releases")
    apps_parser.add_argument("--category", choices=categories, default="all", help="Sidebar category (default: all)")
    _add_table_arguments(apps_parser)

    runs_parser = subparsers.add_parser("runs", help="List workflow runs")
    _add_table_arguments(runs_parser)

    info_parser = subparsers.add_parser("info", help="Show the details of an app")
    info_parser.add_argument("app", help="Release id, tag name or owner login")

    share_parser = subparsers.add_parser("share", help="Print the links for sharing an app")
    share_parser.add_argument("app", help="Release id, tag name or owner login")

    favorite_parser = subparsers.add_parser("favorite", help="Mark an app as favorite")
    favorite_parser.add_argument("app", help="Release id, tag name or owner login")
    favorite_parser.add_argument("--remove", action="store_true", help="Unmark the app instead")

    settings_parser = subparsers.add_parser("settings", help="Show or change hub settings")
    settings_subparsers = settings_parser.add_subparsers(dest="settings_command")
    settings_subparsers.add_parser("show", help="Show the resolved settings")
    set_parser = settings_subparsers.add_parser("set", help="Store a setting")
    set_parser.add_argument("key", choices=list(DEFAULT_SETTINGS))
    set_parser.add_argument("value")
    unset_parser = settings_subparsers.add_parser("unset", help="Reset a setting to its default")
    unset_parser.add_argument("key", choices=list(DEFAULT_SETTINGS))

    server_parser = subparsers.add_parser("server", help="Start the JSON API server")
    server_parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to run the server on (default: 8080)"
    )
    server_parser.add_argument(
        "--reload-interval",
        type=int,
        default=900,
        help="Seconds between background reloads, 0 to disable (default: 900)"
    )

    return parser


def _add_table_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("--search", default="", help="Only show rows matching this text")
    parser.add_argument("--sort", help="Column to sort by")
    parser.add_argument("--reverse", action="store_true", help="Sort in reverse order")
    parser.add_argument("--columns", help="Comma-separated columns to show")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    parser.add_argument("--reload", action="store_true", help="Ignore cached responses")


def _report_errors(env: AppEnv) -> bool:
    for selection, error in env.errors:
        prefix = f"{selection}: " if selection else ""
        print(f"Error: {prefix}{error}", file=sys.stderr)
    return bool(env.errors)


def _load_app(env: AppEnv, key: str):
    env.reload_apps()
    if _report_errors(env):
        return None
    app = env.find_app(key)
    if app is None:
        print(f"No app matching '{key}'", file=sys.stderr)
    return app


def cmd_apps(env: AppEnv, args) -> int:
    env.reload_apps(reload=args.reload)
    if _report_errors(env):
        return 1
    category = SidebarCategory(args.category)
    submit_search_query(env, args.search, category)
    if args.sort:
        env.releases.sort_by(args.sort, reverse=args.reverse)
    favorites = []
    if category is SidebarCategory.FAVORITES:
        with get_settings_store(args.db) as store:
            store.setup_database()
            favorites = store.get_favorites()
    apps = apps_in_category(env, category, favorites)
    if args.json:
        print(json.dumps([app.to_dict() for app in apps], indent=2))
    else:
        titles = args.columns.split(",") if args.columns else None
        print(env.releases.render(titles, rows=apps))
    return 0


def cmd_runs(env: AppEnv, args) -> int:
    env.reload_runs(reload=args.reload)
    if _report_errors(env):
        return 1
    submit_search_query(env, args.search, SidebarCategory.BUILDS)
    if args.sort:
        env.runs.sort_by(args.sort, reverse=args.reverse)
    if args.json:
        print(json.dumps([{
            "id": run.id,
            "name": run.name,
            "run_number": run.run_number,
            "status": run.status,
            "conclusion": run.conclusion,
            "head_sha": run.head_sha,
        } for run in env.runs.rows()], indent=2))
    else:
        titles = args.columns.split(",") if args.columns else None
        print(env.runs.render(titles))
    return 0


def cmd_settings(args) -> int:
    with get_settings_store(args.db) as store:
        store.setup_database()
        if args.settings_command == "set":
            store.set(args.key, args.value)
        elif args.settings_command == "unset":
            store.unset(args.key)
        for key, value in store.load_hub_settings().to_dict().items():
            print(f"{key} = {value}")
    return 0


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return 1

    try:
        if args.command == "settings":
            return cmd_settings(args)
        if args.command == "server":
            from .server import run_server
            run_server(port=args.port, db_path=args.db,
                       enable_background_reload=args.reload_interval > 0,
                       reload_interval=args.reload_interval)
            return 0

        env = create_app_env(args.db)
        if args.command == "apps":
            return cmd_apps(env, args)
        if args.command == "runs":
            return cmd_runs(env, args)

        app = _load_app(env, args.app)
        if app is None:
            return 1
        if args.command == "info":
            print(render_app_info(app))
        elif args.command == "share":
            print(share(app))
        elif args.command == "favorite":
            with get_settings_store(args.db) as store:
                store.setup_database()
                if not mark_favorite(store, app, favorite=not args.remove):
                    return 1
            print(f"{'Removed' if args.remove else 'Added'} {app.repository.owner.app_name} {'from' if args.remove else 'to'} favorites")
        return 0
    except KeyError as e:
        print(f"Error: {e.args[0]}", file=sys.stderr)
        return 1
    except SettingsError as e:
        print(f"Settings error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
