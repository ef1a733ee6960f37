from leo_setup.cli import main

raise SystemExit(main())
