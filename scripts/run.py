# scripts/run.py
# Same as the `tenantprov` console script; needs `pip install -e .` first.
from tenantprov.app.main import main

if __name__ == "__main__":
    raise SystemExit(main())
