import os, requests
from dotenv import load_dotenv
load_dotenv()
API = os.getenv("API_BASE_URL", "http://localhost:8000")
S = requests.Session(); S.headers.update({"Accept":"application/json"})

def healthz(deep: bool = False):
    r=S.get(f"{API}/healthz",params={"deep":str(deep).lower()},timeout=30); r.raise_for_status(); return r.json()
def lookup(name):
    r=S.post(f"{API}/lookup",json={"name":name},timeout=60); r.raise_for_status(); return r.json()
def normalize(names):
    # server does ~2 lookups + 0.1s pause per name, with retries on top
    r=S.post(f"{API}/normalize",json={"names":list(names)},timeout=60+10*len(names)); r.raise_for_status(); return r.json()
def normalize_csv(file_name: str, data: bytes, column: str | None = None, output: str = "csv"):
    form = {"output": output}
    if column:
        form["column"] = column
    r = S.post(f"{API}/normalize/csv", files={"file": (file_name, data, "text/csv")}, data=form, timeout=3600)
    r.raise_for_status()
    return r.json() if output == "json" else r.content
