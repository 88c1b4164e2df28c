from periodic_worker.main import main

raise SystemExit(main())
