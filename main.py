import argparse
import logging
import time

from wastefleet.config import load_config, resolve_config_path
from wastefleet.storage import CsvStorage
from wastefleet.system import WasteManagementSystem
from wastefleet.utils import log_time, setup_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Simulate bin fill levels and dispatch a collection route.")
    parser.add_argument(
        "config",
        nargs="?",
        default="config.yaml",
        help="Config file (relative to the package data/ dir or absolute path)",
    )
    parser.add_argument("--data-dir", default=".", help="Directory holding bins.csv and collection_history.csv")
    parser.add_argument("--ticks", type=int, default=12, help="Simulation ticks to run before planning")
    parser.add_argument("--live", type=float, default=None, metavar="SECONDS",
                        help="Run the background simulator for this long instead of --ticks")
    parser.add_argument("--threshold", type=int, default=None, help="Dispatch threshold in percent")
    parser.add_argument("--execute", action="store_true", help="Commit the planned route")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def print_bins(system):
    print(f"{'BIN ID':<12} {'LOCATION':<20} {'TYPE':<12} {'LEVEL':>6} {'STATUS':>10}")
    for b in system.registry.all():
        print(f"{b.id:<12} {b.location:<20} {b.category.value:<12} {b.fill_level:>5}% "
              f"{system.rules.evaluate(b).value:>10}")


def print_analytics(report):
    print(f"Total bins:          {report.total_bins}")
    for tier, count in report.tier_counts.items():
        print(f"{tier.value.title() + ' status:':<20} {count} ({report.tier_percentages[tier]:.1f}%)")
    print(f"Average fill level:  {report.average_fill:.1f}%")
    for category, stats in report.categories.items():
        print(f"  {category.value + ':':<18} {stats.count} bins (avg {stats.average_fill:.1f}%)")
    print(f"Overflow risk:       {report.overflow_risk_count} bins")
    print(f"Total collections:   {report.total_collections}")
    print(f"CO2 saved:           {report.co2_saved_kg:.1f} kg")
    print(f"Waste diverted:      {report.waste_diverted_kg:.1f} kg")
    print(f"Route efficiency:    {report.route_efficiency:.1f} kg CO2/route")


def main(argv=None):
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config_path = resolve_config_path(args.config)
    config = load_config(config_path)
    print(f'Loaded config from {config_path}')

    system = WasteManagementSystem(config)
    storage = CsvStorage(args.data_dir, config)
    storage.restore(system)
    storage.attach(system)

    start = time.perf_counter()
    if args.live:
        print(f"Running live simulation for {args.live:.0f} seconds...")
        with system:
            time.sleep(args.live)
    else:
        print(f"Running {args.ticks} simulation ticks...")
        system.simulator.run_ticks(args.ticks)
    log_time("Simulation", start)

    print(f"\n{'='*70}")
    print("Bin Status")
    print(f"{'='*70}")
    print_bins(system)

    alerts = system.get_alerts()
    print(f"\n{'='*70}")
    print(f"Active Alerts: {len(alerts)}")
    print(f"{'='*70}")
    for alert in alerts:
        print(f"[{alert.urgency.value}] {alert.bin_id} - {alert.location} ({alert.fill_level}%)")

    plan = system.plan_route(args.threshold)
    print(f"\n{'='*70}")
    print("Collection Route")
    print(f"{'='*70}")
    if not plan:
        print(plan.reason)
    else:
        print(f"Bins to collect: {len(plan)} | Estimated time: {plan.estimated_minutes} minutes "
              f"| CO2 saved: {plan.co2_saved_kg} kg")
        for i, stop in enumerate(plan.stops, start=1):
            print(f"{i:>3}. {stop.bin_id} - {stop.location} ({stop.fill_level}%)")
        if args.execute:
            event = system.execute_route(plan)
            print(f"Collection completed successfully! {event.count} bins emptied.")
        else:
            print("Route not executed (pass --execute to commit).")

    history = system.get_history()
    print(f"\n{'='*70}")
    print("Collection History")
    print(f"{'='*70}")
    if not history:
        print(f"{history.reason}.")
    else:
        for event in history:
            print(f"{event.timestamp.strftime(config['storage']['timestamp_format'])}  "
                  f"{event.count} bins: {', '.join(event.bin_ids)}")

    print(f"\n{'='*70}")
    print("Analytics")
    print(f"{'='*70}")
    print_analytics(system.get_analytics())

    storage.save(system.snapshot(), system.ledger.all())


if __name__ == "__main__":
    main()
