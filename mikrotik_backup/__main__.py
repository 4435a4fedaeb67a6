from mikrotik_backup.cli import main

raise SystemExit(main())
