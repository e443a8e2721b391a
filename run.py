import os

from cautela import create_app

app = create_app()

if __name__ == "__main__":
    # Escuta em todas as interfaces da máquina (LAN/Wi-Fi): o link de assinatura é aberto no celular
    debug = os.environ.get("FLASK_DEBUG", "False").lower() in ("1", "true", "yes")
    app.run(host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", 5000)), debug=debug)
