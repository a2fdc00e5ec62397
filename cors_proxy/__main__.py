from cors_proxy.server import main

if __name__ == "__main__":
    main()
