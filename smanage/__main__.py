from smanage.cli import main

main()
