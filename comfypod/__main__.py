from comfypod.cli import main

main()
