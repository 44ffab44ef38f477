from __future__ import annotations

from zupf_builds.main import main

raise SystemExit(main())
