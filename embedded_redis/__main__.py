from embedded_redis.control.daemon import main

main()
