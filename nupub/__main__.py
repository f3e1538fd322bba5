from nupub.cli.app import main

main()
