from testflight_monitor.main import main

raise SystemExit(main())
