"""initstation CLI: clear stale station locks that cause 'too many login attempts'."""

import argparse
import sys

from initstation.core.reconcile import Outcome, ReconciliationEngine, summarize
from initstation.errors import InitStationError
from initstation.settings import VERSION, load_settings
from initstation.utils.logger import setup_logger, trim_log_file

APP = "initstation"


def build_parser():
    parser = argparse.ArgumentParser(
        prog=APP,
        description="Find and remove orphaned workstation locks so staff can log in again.",
        epilog="Example: %(prog)s --station=WMC --interactive",
    )
    parser.add_argument("-s", "--station", action="append", default=[], metavar="NAME",
                        help="Unlock stations whose name contains NAME. May be repeated.")
    parser.add_argument("-r", "--remove_all_locks", action="store_true",
                        help="Remove all orphaned lock files. Locks of connected stations are kept.")
    parser.add_argument("-L", "--List", dest="list_stations", action="store_true",
                        help="Display all stations currently logged in.")
    parser.add_argument("-f", "--force", action="store_true",
                        help="Kill still-running server sessions before removing their locks.")
    parser.add_argument("-i", "--interactive", action="store_true",
                        help="Ask before killing each still-running session.")
    parser.add_argument("-c", "--config", help="Path to a YAML configuration file.")
    parser.add_argument("-l", "--log_file", dest="caller_log",
                        help="Also log to this file, e.g. the caller's log.")
    parser.add_argument("-d", "--debug", action="store_true", help="Turn on debug logging.")
    parser.add_argument("-V", "--VARS", dest="show_vars", action="store_true",
                        help="Display all settings.")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s version: {VERSION}")
    return parser


def confirm(message, input_func=input):
    """Ask a yes/no question; anything but y/Y is no."""
    try:
        answer = input_func(f"{message}? y/[n]: ")
    except EOFError:
        return False
    return answer.strip() in ("y", "Y")


def collect_station_ids(engine, names, logger):
    """Expand station names or partial names to station IDs, keeping request order."""
    station_ids = []
    for name in names:
        matches = sorted(engine.admin.resolve(name), key=lambda s: (len(s), s))
        if not matches:
            logger.info(f"'{name}', no such station registered in the ILS.")
            continue
        if len(matches) > 1:
            logger.info(f"multiple station matches for {name}: ")
            for station_id in matches:
                logger.info(f"  {engine.admin.name_for(station_id)} ({station_id})")
        for station_id in matches:
            if station_id not in station_ids:
                station_ids.append(station_id)
    return station_ids


def run(args, settings, logger, input_func=input):
    """Run the requested modes and return the process exit status."""
    engine = ReconciliationEngine(settings)
    logger.info(f"== starting {APP} version: {VERSION}")

    if args.show_vars:
        for key, value in settings.as_dict().items():
            logger.info(f"{key}={value}")

    engine.admin.check()
    engine.inventory.check()

    if args.list_stations:
        logger.info("the ILS thinks the following stations are connected:")
        for station_id, name in engine.connected_stations():
            print(f"{station_id}\t{name or '<unregistered>'}")

    station_ids = collect_station_ids(engine, args.station, logger)
    if args.remove_all_locks:
        reports = engine.reconcile_all(force_kill=args.force, extra_ids=station_ids)
    elif station_ids:
        reports = engine.reconcile_many(station_ids, force_kill=args.force)
    else:
        reports = []

    if not reports:
        logger.info("nothing to do.")
        return 0

    if args.interactive and not args.force:
        for i, report in enumerate(reports):
            if report.outcome != Outcome.LIVE_PRESERVED:
                continue
            if confirm(f"kill process {report.pid} for {report.label}", input_func):
                reports[i] = engine.reconcile(report.station_id, force_kill=True)
            else:
                logger.info(f"not touching {report.pid}")

    for report in reports:
        for error in report.errors:
            logger.warning(f"{report.label}: {error}")
    summary = ", ".join(f"{outcome.value}={count}" for outcome, count in summarize(reports).items())
    logger.info(f"processed {len(reports)} station(s): {summary}")
    return 0


def main(argv=None, input_func=input):
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(config_path=args.config, caller_log=args.caller_log, debug=args.debug or None)
    except InitStationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        logger = setup_logger(
            APP,
            log_file=settings.log_path,
            caller_log=settings.caller_log,
            debug=settings.debug or settings.env_mode == "development",
        )
    except OSError as e:
        print(f"ERROR: could not open log file: {e}", file=sys.stderr)
        return 1
    try:
        return run(args, settings, logger, input_func=input_func)
    except InitStationError as e:
        logger.error(f"**error: {e}")
        return 1
    finally:
        trim_log_file(settings.log_path, settings.max_log_lines)


if __name__ == "__main__":
    sys.exit(main())
