"""Allow ``python -m gcc_tree_shims``."""

from gcc_tree_shims.main import main

raise SystemExit(main())
