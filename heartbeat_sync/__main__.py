from heartbeat_sync.cli import main

raise SystemExit(main())
