from pulsescope.cli import main

main()
