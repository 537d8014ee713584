import numpy as np
import pandas as pd

from drivers.models import VehicleClass

# Guildford, roughly the middle of the Surrey operating region
BASE_LAT = 51.2362
BASE_LON = -0.5704

VEHICLE_MIX = {
    VehicleClass.SEDAN: 0.35,
    VehicleClass.HATCHBACK: 0.20,
    VehicleClass.SUV: 0.15,
    VehicleClass.ELECTRIC: 0.15,
    VehicleClass.VAN: 0.05,
    VehicleClass.WAGON: 0.05,
    VehicleClass.MOTORCYCLE: 0.05,
}


def generate_mock_drivers(filename="mock_drivers.csv", count=200, seed=None):
    """
    Scatters a fleet around the operating region and writes it to CSV.
    Roughly 80% online, 10% busy, 10% offline; a few unapproved drivers so
    the eligibility filter has something to do.
    """
    rng = np.random.default_rng(seed)

    # ~0.15 degrees of latitude is ~16 km
    lats = BASE_LAT + rng.uniform(-0.15, 0.15, count)
    lons = BASE_LON + rng.uniform(-0.25, 0.25, count)

    classes = [vehicle_class.value for vehicle_class in VEHICLE_MIX]
    weights = np.array(list(VEHICLE_MIX.values()))

    df = pd.DataFrame({
        "driver_id": [f"DRV-{str(i + 1).zfill(4)}" for i in range(count)],
        "name": [f"Driver {i + 1}" for i in range(count)],
        "lat": np.round(lats, 6),
        "lon": np.round(lons, 6),
        "vehicle_class": rng.choice(classes, size=count, p=weights / weights.sum()),
        "operational_status": rng.choice(["online", "busy", "offline"], size=count, p=[0.8, 0.1, 0.1]),
        "approval_state": rng.choice(["approved", "pending"], size=count, p=[0.95, 0.05]),
        "speed_kmh": np.round(rng.uniform(0, 60, count), 1),
        "heading": np.round(rng.uniform(0, 360, count), 1),
        "rating": np.round(rng.uniform(3.8, 5.0, count), 2),
    })
    df.to_csv(filename, index=False)

    print(f"Successfully generated {count} mock drivers into '{filename}'.")
    print(df["vehicle_class"].value_counts().to_string())
    return df


if __name__ == "__main__":
    generate_mock_drivers()
