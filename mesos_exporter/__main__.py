from mesos_exporter.app import main

main()
