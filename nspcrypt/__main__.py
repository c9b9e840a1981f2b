from nspcrypt.cli import main

raise SystemExit(main())
