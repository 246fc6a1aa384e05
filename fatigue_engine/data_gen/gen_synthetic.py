import os, json, random, uuid
from datetime import date, datetime, timedelta

from fatigue_engine import config
from fatigue_engine.timeline.weeks import week_start_for

DRIVER_TYPES = ["solo", "two_up"]
# Rough depot locations around Perth / WA
DEPOTS = [(-31.95, 115.86), (-32.05, 115.75), (-31.89, 116.01), (-32.53, 115.74), (-31.65, 116.67)]

OUT_DIR = config.DATA_DIR


def _shift_events(day: date, rng: random.Random, depot):
    """One shift: work blocks separated by breaks, ending with a stop."""
    start = datetime.combine(day, datetime.min.time()) + timedelta(minutes=rng.choice(range(4 * 60, 8 * 60, 15)))
    lat, lng = depot
    events = []
    t = start
    for _ in range(rng.randint(2, 4)):
        events.append({"time": t.isoformat(), "type": "work", "lat": round(lat, 5), "lng": round(lng, 5),
                       "accuracy": rng.choice([10, 25, 50, 800])})
        work_min = rng.choice([150, 210, 270, 330])  # some blocks run past 5h
        t += timedelta(minutes=work_min)
        lat += rng.uniform(-0.4, 0.4)
        lng += rng.uniform(-0.4, 0.4)
        if rng.random() < 0.15:
            # missing GPS fix
            events.append({"time": t.isoformat(), "type": "break"})
        else:
            events.append({"time": t.isoformat(), "type": "break", "lat": round(lat, 5), "lng": round(lng, 5),
                           "accuracy": rng.choice([10, 25, 50])})
        t += timedelta(minutes=rng.choice([5, 10, 20, 30, 45]))
    events.append({"time": t.isoformat(), "type": "stop", "lat": round(lat, 5), "lng": round(lng, 5),
                   "accuracy": 20})
    return events


def gen_sheets(drivers=8, weeks=2, out_file=f"{OUT_DIR}/sample_sheets.json", start_date=None, seed=42):
    """
    Event-based weekly sheets, one per driver per week (Sunday start),
    consecutive weeks so the oversight report can pair previous weeks.
    """
    rng = random.Random(seed)
    if start_date is None:
        # last generated week is the current one
        first_week = week_start_for(date.today()) - timedelta(days=7 * (weeks - 1))
    else:
        first_week = week_start_for(date.fromisoformat(start_date))

    sheets = []
    for i in range(drivers):
        name = f"driver_{i}"
        driver_type = rng.choices(DRIVER_TYPES, weights=[0.8, 0.2])[0]
        depot = rng.choice(DEPOTS)
        for w in range(weeks):
            week_start = first_week + timedelta(days=7 * w)
            days = []
            odo = rng.randint(50_000, 400_000)
            for d in range(7):
                day = week_start + timedelta(days=d)
                if rng.random() < 0.25:
                    days.append({"date": day.isoformat(), "events": []})
                    continue
                events = _shift_events(day, rng, depot)
                km = rng.randint(200, 900)
                days.append({"date": day.isoformat(), "events": events, "start_kms": odo, "end_kms": odo + km})
                odo += km
            sheets.append({
                "id": str(uuid.UUID(int=rng.getrandbits(128)))[:8],
                "driver_name": name,
                "driver_type": driver_type,
                "week_starting": week_start.isoformat(),
                "last_24h_break": None,
                "days": days,
            })

    os.makedirs(os.path.dirname(out_file) or ".", exist_ok=True)
    with open(out_file, "w") as f:
        json.dump(sheets, f, indent=2)
    print("Wrote", out_file)
    return sheets


if __name__ == "__main__":
    gen_sheets()
