from autosave.cli import main

main()
