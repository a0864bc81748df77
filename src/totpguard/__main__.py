from totpguard.cli import main

main()
