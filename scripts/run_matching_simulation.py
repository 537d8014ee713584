import os
import random
import time

import pandas as pd

from dispatch.engine import build_engine
from drivers.models import Driver
from geo.place import Place
from notifications.dispatcher import LoggingDispatcher
from rides.models import RideStatus


def load_drivers(filepath="mock_drivers.csv"):
    # Resolve relative to the repo root, wherever the script is run from.
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    absolute_path = filepath if os.path.isabs(filepath) else os.path.join(base_dir, filepath)

    df = pd.read_csv(absolute_path)
    drivers = [
        Driver.new(
            row.driver_id,
            row.vehicle_class,
            row.operational_status,
            row.approval_state,
            name=row.name,
            rating=float(row.rating),
        )
        for row in df.itertuples(index=False)
    ]
    return df, drivers


def random_place(df, spread=0.05):
    anchor = df.sample(1).iloc[0]
    return Place(
        lat=round(anchor.lat + random.uniform(-spread, spread), 6),
        lng=round(anchor.lon + random.uniform(-spread, spread), 6),
    )


def run_simulation(filepath="mock_drivers.csv", rides=30, acceptance_probability=0.7):
    print("=== STARTING RIDE MATCHING SIMULATION ===")

    # 1. Load the fleet and feed positions into the engine
    df, drivers = load_drivers(filepath)
    engine = build_engine(drivers, notification_dispatcher=LoggingDispatcher(), synchronous_notifications=True)
    for row in df.itertuples(index=False):
        engine.locations.update_driver_location(row.driver_id, row.lat, row.lon, row.heading, row.speed_kmh)
    print(f"Loaded {len(drivers)} drivers, {len(engine.driver_locations)} positions.\n")

    # 2. Book rides and let offered drivers respond
    results = []
    for index in range(rides):
        rider_id = f"RDR-{index + 1:03d}"
        pickup, dropoff = random_place(df), random_place(df, spread=0.1)
        vehicle_class = random.choice(["sedan", "hatchback", "suv", "electric"])

        start_time = time.perf_counter()
        candidates = engine.matcher.nearby(pickup.lat, pickup.lng, 10.0)
        search_ms = (time.perf_counter() - start_time) * 1000

        estimate = engine.dispatcher.estimate_fare(rider_id, pickup, dropoff, vehicle_class)
        ride = engine.dispatcher.book_ride(rider_id, estimate_id=estimate.estimate_id)

        # offered drivers answer in a random order until someone accepts
        offered = sorted(engine.dispatcher.offered_to(ride.id))
        random.shuffle(offered)
        for driver_id in offered:
            ride = engine.lifecycle.get(ride.id)
            if ride.status != RideStatus.SEARCHING:
                break
            if random.random() < acceptance_probability:
                ride = engine.dispatcher.accept(ride.id, driver_id)
            else:
                ride = engine.dispatcher.reject(ride.id, driver_id, "simulated")

        if ride.status == RideStatus.ACCEPTED:
            engine.lifecycle.start(ride.id, ride.driver_id)
            ride = engine.lifecycle.complete(ride.id, ride.driver_id)

        results.append({
            "ride_id": ride.id,
            "vehicle_class": vehicle_class,
            "nearby_any_class": len(candidates),
            "drivers_available": estimate.available_drivers,
            "offers": len(offered),
            "rejections": len(ride.rejected_driver_ids),
            "status": ride.status.value,
            "estimated_fare": ride.estimated_fare,
            "final_fare": ride.final_fare,
            "commission": ride.platform_commission,
            "driver_earnings": ride.driver_earnings,
            "search_ms": round(search_ms, 2),
        })

    # 3. Summarise
    summary = pd.DataFrame(results)
    print("\n--- Ride Outcomes ---")
    print(summary["status"].value_counts().to_string())
    print("\n--- By Vehicle Class ---")
    print(summary.groupby("vehicle_class")[["drivers_available", "estimated_fare", "search_ms"]].mean().round(2).to_string())

    completed = summary[summary["status"] == RideStatus.COMPLETED.value]
    print("\n=== SIMULATION COMPLETE ===")
    print(f"Rides completed: {len(completed)} / {len(summary)}")
    print(f"Platform commission: {completed['commission'].sum():.2f} GBP")
    print(f"Driver earnings: {completed['driver_earnings'].sum():.2f} GBP")
    engine.shutdown()
    return summary


if __name__ == "__main__":
    run_simulation()
