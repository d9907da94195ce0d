from isolation_lab.interfaces.cli.main import main

raise SystemExit(main())
