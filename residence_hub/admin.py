from django.contrib import admin

# Customize admin site
admin.site.site_header = "Residence Hub - Admin Panel"
admin.site.site_title = "Residence Hub Admin"
admin.site.index_title = "Residences, co-ownership and accounting"
