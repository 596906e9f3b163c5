from ludo_lobby.server.app import main

main()
