# Storefront checkout service
