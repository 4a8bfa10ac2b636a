from school_bridge.server.app import main

main()
