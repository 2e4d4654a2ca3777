from depinventory.cli import main

main()
