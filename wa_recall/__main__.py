from wa_recall.clients import bridge

if __name__ == "__main__":
    bridge.run()
