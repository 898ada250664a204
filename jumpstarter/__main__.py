from jumpstarter.orchestrator import main

main()
