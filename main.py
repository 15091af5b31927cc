from cloudsync import lifecycle_controller, resource_finder



def main():
    # Example usage of the lifecycle factory
    gcp_config = {"project_id": "my-gcp-project"}

    network = lifecycle_controller(
        "network", "gcp", gcp_config, {"name": "prod-net", "routing_mode": "regional"}
    )
    if not network.refresh():
        network.create()

    firewall = lifecycle_controller("firewall", "gcp", gcp_config, {
        "name": "allow-web",
        "network": "prod-net",
        "direction": "ingress",
        "allowed": [{"protocol": "tcp", "ports": ["80", "443"]}],
        "source_ranges": ["0.0.0.0/0"],
    })
    if not firewall.refresh():
        firewall.create()

    print(f"Network: {network.config.to_dict()}")
    print(f"Firewalls: {[fw['name'] for fw in resource_finder('firewall', 'gcp', gcp_config).find_all()]}")

if __name__ == "__main__":
    main()
