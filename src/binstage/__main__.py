from binstage.cli import main

raise SystemExit(main())
