from themekit.cli import main

raise SystemExit(main())
