# client/gen_data.py
import random
from datetime import datetime, timedelta, timezone

# What people actually type into medication fields: brands, generics,
# doses, odd casing, typos, and the occasional thing that isn't a drug.
MEDS = [
    "Tylenol", "tylenol 500mg", "Advil", "ADVIL", "ibuprofen 200 mg", "Lipitor",
    "atorvastatin", "Zoloft", "sertraline 50mg", "Glucophage", "metformin",
    "Prozac", "Synthroid", "levothyroxine", "Norvasc", "amlodipine 5 mg",
    "Zithromax", "amoxicilin", "Xanax", "lisinopril", "Nexium", "omeprazol",
    "ASA 81", "HCTZ", "Coumadin", "xyz-not-a-drug",
]
FIRST = ["Alex","Jamie","Taylor","Jordan","Sam","Avery","Casey","Riley","Morgan","Quinn","Jesse","Cameron"]
LAST  = ["Chen","Garcia","Patel","Santos","Lee","Kim","Johnson","Brown","Wilson","Martinez","Davis","Nguyen"]
PRESCRIBERS = ["Dr. Adams","Dr. Baker","Dr. Singh","Dr. Okafor","Dr. Rossi"]

def _patient_id(): return f"P{random.randint(1000,9999)}"
def _name(): return f"{random.choice(FIRST)} {random.choice(LAST)}"
def _date_ago(days=0):
    return (datetime.now(timezone.utc) - timedelta(days=days)).date().isoformat()

def gen_medication_record():
    return {
        "PATIENT": _patient_id(),
        "PATIENT_NAME": _name(),
        "START": _date_ago(days=random.randint(0, 365)),
        "DESCRIPTION": random.choice(MEDS),
        "PRESCRIBER": random.choice(PRESCRIBERS),
        "DISPENSES": random.randint(1, 12),
    }

def gen_sample_rows(n: int = 50, seed: int | None = None):
    if seed is not None:
        random.seed(seed)
    return [gen_medication_record() for _ in range(n)]
