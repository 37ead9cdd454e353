#!/usr/bin/env python3
"""Print a time/speed/throttle/brake trace for one lap of an .ibt capture.

    python examples/lap_trace.py session.ibt 6 > trace.dat
"""

import sys

from ibtelem import Capture

path, lap = sys.argv[1], int(sys.argv[2])

with Capture(path) as cap:
    tbl = cap.table(["SessionTime", "Speed", "Throttle", "Brake"], lap=lap)
    if len(tbl["_time"]) == 0:
        print(f"lap {lap} not found; laps: {[l for l, _, _ in cap.laps()]}",
              file=sys.stderr)
        sys.exit(1)
    for row in zip(tbl["SessionTime"], tbl["Speed"], tbl["Throttle"], tbl["Brake"]):
        print(" ".join(f"{v:.6g}" for v in row))
